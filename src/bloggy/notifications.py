from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Dict, List, Optional, Tuple

import aiosmtplib
import structlog
from jinja2 import DictLoader, Environment, select_autoescape

from bloggy.config import Settings
from bloggy.errors import EmailError

logger = structlog.get_logger(__name__)

WELCOME = "welcome"
POST_PUBLISHED = "postPublished"

HELP_OUTRO = "Need help, or have questions? Just send an email to info@bloggy.com, we'd love to help."

TEMPLATES = {
    "email.html": """<!DOCTYPE html>
<html>
  <body style="font-family: Helvetica, Arial, sans-serif; color: #333;">
    <h2><a href="{{ product_link }}" style="color: #333; text-decoration: none;">{{ product_name }}</a></h2>
    <p>Hi {{ content.name }},</p>
    {% for line in content.intro %}<p>{{ line }}</p>
    {% endfor %}
    {% if content.action %}<p>{{ content.action.instructions }}</p>
    <p><a href="{{ content.action.link }}" style="background: #22BC66; color: #fff; padding: 10px 18px; border-radius: 3px; text-decoration: none;">{{ content.action.text }}</a></p>
    {% endif %}
    {% for line in content.outro %}<p>{{ line }}</p>
    {% endfor %}
    <p>Yours truly,<br>{{ product_name }}</p>
  </body>
</html>
""",
    "email.txt": """Hi {{ content.name }},

{% for line in content.intro %}{{ line }}
{% endfor %}
{% if content.action %}{{ content.action.instructions }}
{{ content.action.text }}: {{ content.action.link }}
{% endif %}
{% for line in content.outro %}{{ line }}
{% endfor %}
Yours truly,
{{ product_name }}
""",
}


@dataclass
class EmailAction:
    instructions: str
    text: str
    link: str


@dataclass
class EmailContent:
    """Layout independent description of one email"""
    name: str
    intro: List[str] = field(default_factory=list)
    action: Optional[EmailAction] = None
    outro: List[str] = field(default_factory=lambda: [HELP_OUTRO])


class EmailNotifier:
    """Renders transactional emails and delivers them over SMTP"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.environment = Environment(
            loader=DictLoader(TEMPLATES),
            autoescape=select_autoescape(["html"]),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.settings.email_sender and self.settings.password_sender)

    def build_content(self, kind: str, data: Dict) -> Tuple[str, EmailContent]:
        name = data.get("name") or "there"

        if kind == WELCOME:
            intro = ["Welcome to Bloggy! We're very excited to have you on board."]
            if data.get("temporaryPassword"):
                intro.append(
                    "Your account was created from your GitHub profile. "
                    f"Your temporary password is: {data['temporaryPassword']}"
                )
                intro.append("Please change it from your profile settings after logging in.")
            return "Welcome to Bloggy!", EmailContent(name=name, intro=intro)

        if kind == POST_PUBLISHED:
            intro = ["Congratulation, your post has been published!"]
            if data.get("title"):
                intro.append(f'"{data["title"]}" is now live on Bloggy.')
            action = EmailAction(
                instructions="To view your post, please click here:",
                text="View post",
                link=f"{self.settings.frontend_url.rstrip('/')}/home",
            )
            return "Your post was added to Bloggy!", EmailContent(name=name, intro=intro, action=action)

        raise ValueError(f"unknown email kind: {kind}")

    def render(self, content: EmailContent) -> Tuple[str, str]:
        """Return (html, text) bodies for content"""
        context = {
            "content": content,
            "product_name": self.settings.app_name,
            "product_link": self.settings.frontend_url,
        }
        html = self.environment.get_template("email.html").render(**context)
        text = self.environment.get_template("email.txt").render(**context)
        return html, text

    def compose(self, to_address: str, kind: str, data: Dict) -> EmailMessage:
        subject, content = self.build_content(kind, data)
        html, text = self.render(content)

        message = EmailMessage()
        message["From"] = self.settings.email_sender or "no-reply@bloggy.com"
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html, subtype="html")
        return message

    async def deliver(self, message: EmailMessage) -> None:
        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.smtp_host,
                port=self.settings.smtp_port,
                username=self.settings.email_sender,
                password=self.settings.password_sender,
                start_tls=True,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise EmailError(detail=str(e)) from e

    async def send(self, to_address: str, kind: str, data: Dict) -> None:
        """Background entry point: failures are logged, never raised"""
        if not self.enabled:
            logger.warning("email_disabled", kind=kind, to=to_address)
            return

        try:
            await self.deliver(self.compose(to_address, kind, data))
        except (EmailError, ValueError) as e:
            logger.error("email_send_failed", kind=kind, to=to_address, error=str(e))
            return
        logger.info("email_sent", kind=kind, to=to_address)
