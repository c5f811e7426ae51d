import os
from dotenv import load_dotenv


load_dotenv()

SITE_URL = os.getenv("SITE_URL", "http://localhost:8000").rstrip("/")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./meeting_reminders.db")

MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
MAIL_STARTTLS = os.getenv("MAIL_STARTTLS", "True").lower() == "true"
MAIL_SSL_TLS = os.getenv("MAIL_SSL_TLS", "False").lower() == "true"
USE_CREDENTIALS = os.getenv("USE_CREDENTIALS", "True").lower() == "true"
SECRET_KEY = os.getenv("SECRET_KEY")

# No-reply identity every reminder is sent from
NOREPLY_ADDRESS = os.getenv("NOREPLY_ADDRESS", "noreply@example.com")
NOREPLY_NAME = os.getenv("NOREPLY_NAME", "Meeting Reminders")

PLUGIN_ENABLED = os.getenv("PLUGIN_ENABLED", "True").lower() == "true"

REMINDER_CHECK_MINUTES = int(os.getenv("REMINDER_CHECK_MINUTES", 1))
ADHOC_TASK_SECONDS = int(os.getenv("ADHOC_TASK_SECONDS", 60))

# Recipients per queued delivery job
MAX_EMAIL_PER_TASK = 100

# Opening times are stored in UTC
DATE_FORMAT = os.getenv("DATE_FORMAT", "%A, %d %B %Y, %I:%M %p UTC")

REMINDER_SUBJECT_TEMPLATE = os.getenv(
    "REMINDER_SUBJECT_TEMPLATE",
    "Reminder: {name} ({course_shortname}) starts on {date}",
)

REMINDER_EMAIL_TEMPLATE = os.getenv(
    "REMINDER_EMAIL_TEMPLATE",
    """<p>Hello,</p>
<p>This is a reminder that <strong>{name}</strong> in <strong>{course_fullname}</strong>
will start on <strong>{date}</strong>.</p>
<p><a href="{url}">Join the meeting</a></p>""",
)

EMAIL_UNSUBSCRIBE_MESSAGE = os.getenv(
    "EMAIL_UNSUBSCRIBE_MESSAGE",
    'If you no longer wish to receive reminders for this meeting, '
    '<a href="{unsubscribeurl}">unsubscribe here</a>.',
)

MAIL_CONFIG = {
    "MAIL_USERNAME": MAIL_USERNAME,
    "MAIL_PASSWORD": MAIL_PASSWORD,
    "MAIL_PORT": MAIL_PORT,
    "MAIL_SERVER": MAIL_SERVER,
    "MAIL_STARTTLS": MAIL_STARTTLS,
    "MAIL_SSL_TLS": MAIL_SSL_TLS,
    "USE_CREDENTIALS": USE_CREDENTIALS,
}


def plugin_is_enabled() -> bool:
    return PLUGIN_ENABLED
