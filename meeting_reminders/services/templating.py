import re
from typing import Mapping

from bs4 import BeautifulSoup

PLACEHOLDER = re.compile(r"\{(\w+)\}")


def replace_vars_in_text(vars: Mapping[str, object], text: str) -> str:
    """
    Substitute {key} placeholders with values from vars.
    Unknown placeholders are left as they are.
    """
    def _sub(match):
        key = match.group(1)
        if key in vars:
            return str(vars[key])
        return match.group(0)

    return PLACEHOLDER.sub(_sub, text or "")


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html or "", "html.parser")

    # Keep link targets visible in the plain-text part
    for link in soup.find_all("a"):
        href = link.get("href")
        label = link.get_text().strip()
        if href and href != label:
            link.replace_with(f"{label} ({href})" if label else href)

    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(["p", "div", "li", "h1", "h2", "h3", "tr"]):
        block.insert_after("\n")

    text = soup.get_text()
    lines = [" ".join(line.split()) for line in text.splitlines()]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()
