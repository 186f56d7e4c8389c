import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from restock.mycelery.app import celery_app
from restock.core.config import settings
from restock.helpers.getters import isDebugMode, isSmtpConfigured
from restock.logging import get_logger

logger = get_logger("restock.mail")


def build_verification_message(email: str, code: str) -> MIMEMultipart:
    from_email = settings.SMTP_FROM_EMAIL or settings.SMTP_USERNAME
    msg = MIMEMultipart()
    msg['From'] = f"{settings.SMTP_FROM_NAME} <{from_email}>"
    msg['To'] = email
    msg['Subject'] = f"Your {settings.APP_NAME} Password Reset Code"

    body = f"""
    <html>
        <body>
            <h2>Password Reset Code</h2>
            <p>You asked to reset your {settings.APP_NAME} password.</p>
            <p>Your verification code is: <strong>{code}</strong></p>
            <p>This code expires in {settings.RESET_CODE_TTL_MINUTES} minutes.</p>
            <p>If you did not ask for this, you can ignore this email.</p>
        </body>
    </html>
    """
    msg.attach(MIMEText(body, 'html'))
    return msg


@celery_app.task(name="send_verification_code")
def send_verification_code(email: str, code: str):
    """Email a password reset code; without SMTP the code is only logged, and only in debug mode"""
    if not isSmtpConfigured():
        if isDebugMode():
            logger.info(f"Verification code for {email}: {code}")
        else:
            logger.warning("SMTP not configured, verification code not delivered", email=email)
        return {"sent": False, "simulated": True}

    try:
        msg = build_verification_message(email, code)
        server = smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT)
        try:
            server.starttls()
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(msg['From'], email, msg.as_string())
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send verification code to {email}: {e}")
        return {"sent": False, "error": str(e)}

    logger.info(f"Verification code sent to {email}")
    return {"sent": True, "email": email}
