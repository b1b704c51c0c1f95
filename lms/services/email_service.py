import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from loguru import logger

from lms.core.config import settings

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


# Helper to get template
def get_template(template_name):
    return _env.get_template(template_name)


# Helper to send email via SMTP
def send_email_via_smtp(to_email, subject, html_content):
    # Only HOST is required; user/pass are optional for local catchers
    if not settings.SMTP_HOST:
        logger.warning("SMTP host not configured. Skipping email.")
        return

    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>"
        msg["To"] = to_email
        msg.attach(MIMEText(html_content, "html"))

        logger.debug(f"Connecting to SMTP: {settings.SMTP_HOST}:{settings.SMTP_PORT}")

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.ehlo()

            # TLS on submission ports only; local catchers on 1025 don't speak it
            if settings.SMTP_PORT in [587, 2525]:
                server.starttls()
                server.ehlo()

            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)

            server.sendmail(settings.EMAILS_FROM_EMAIL, to_email, msg.as_string())

        logger.info(f"Email sent to {to_email}: {subject}")
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")


# ---------------------------------------------------------
# 1. ARRANGEMENT REVIEWED (to the CC)
# ---------------------------------------------------------
def send_arrangement_reviewed_email(data: dict):
    """
    data requires: name, email, course_title, course_code, version, status
    optional: reason, reviewer_name
    """
    try:
        template = get_template("arrangement_reviewed.html")
        approved = data.get("status") == "approved"
        context = {
            "name": data.get("name"),
            "course_title": data.get("course_title"),
            "course_code": data.get("course_code"),
            "version": data.get("version"),
            "approved": approved,
            "reason": data.get("reason"),
            "reviewer_name": data.get("reviewer_name"),
            "review_date": datetime.now().strftime("%d-%m-%Y"),
            "arrangement_url": f"{settings.FRONTEND_URL}/cc/courses/{data.get('course_id')}/arrangement",
        }
        html_content = template.render(context)
        subject = (
            f"Content arrangement approved - {data.get('course_code')}"
            if approved else
            f"Action required: content arrangement returned - {data.get('course_code')}"
        )
        send_email_via_smtp(data.get("email"), subject, html_content)
    except Exception as e:
        logger.error(f"Error preparing arrangement review email: {e}")


# ---------------------------------------------------------
# 2. COURSE LAUNCHED (to the CC)
# ---------------------------------------------------------
def send_course_launched_email(data: dict):
    """
    data requires: name, email, course_title, course_code, version
    """
    try:
        template = get_template("course_launched.html")
        context = {
            "name": data.get("name"),
            "course_title": data.get("course_title"),
            "course_code": data.get("course_code"),
            "version": data.get("version"),
            "students_notified": data.get("students_notified", 0),
            "launch_date": datetime.now().strftime("%d-%m-%Y %I:%M %p"),
            "course_url": f"{settings.FRONTEND_URL}/courses/{data.get('course_id')}",
        }
        html_content = template.render(context)
        send_email_via_smtp(data.get("email"), f"{data.get('course_code')} is live for students", html_content)
    except Exception as e:
        logger.error(f"Error preparing launch email: {e}")


# ---------------------------------------------------------
# 3. PASSWORD RESET OTP
# ---------------------------------------------------------
def send_password_reset_email(data: dict):
    """
    data requires: name, email, otp
    """
    try:
        template = get_template("password_reset.html")
        context = {
            "name": data.get("name"),
            "otp": data.get("otp"),
            "valid_minutes": data.get("valid_minutes", 15),
            "reset_url": f"{settings.FRONTEND_URL}/reset-password",
        }
        html_content = template.render(context)
        send_email_via_smtp(data.get("email"), "Your Campus LMS password reset code", html_content)
    except Exception as e:
        logger.error(f"Error preparing password reset email: {e}")


# ---------------------------------------------------------
# 4. WELCOME (account created by an admin)
# ---------------------------------------------------------
def send_welcome_email(data: dict):
    """
    data requires: name, email, role
    """
    try:
        template = get_template("welcome.html")
        context = {
            "name": data.get("name"),
            "email": data.get("email"),
            "role": data.get("role"),
            "registration_number": data.get("registration_number"),
            "login_url": f"{settings.FRONTEND_URL}/login",
        }
        html_content = template.render(context)
        send_email_via_smtp(data.get("email"), "Welcome to Campus LMS", html_content)
    except Exception as e:
        logger.error(f"Error preparing welcome email: {e}")
