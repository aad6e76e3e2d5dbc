"""
notifications.py
────────────────
Outbound email (SMTP) and SMS (Twilio) for registrations, class
cancellations, waiver agreements and new accounts.

Each message type is a closed dataclass, so a missing field fails at
construction instead of rendering a half-filled template. Sending never
raises into the caller: a failed notification is logged and skipped.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Iterable, Optional

from twilio.rest import Client as TwilioClient

from .formatters import format_agreement_date, format_class_date, format_class_time, format_price
from .logic_models import Profile, Registration, Waiver, YogaClass, utcnow
from .utils import normalize_phone, safe_execute

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Message types
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class RegistrationConfirmation:
    user_email: str
    user_name: str
    class_name: str
    class_date: str
    class_time: str
    instructor: str
    payment_amount: float
    class_location: str = "Main Studio"

    def subject(self) -> str:
        return f"Registration Confirmed - {self.class_name}"

    def body(self) -> str:
        return (
            f"Hi {self.user_name},\n\n"
            f"You're registered for {self.class_name} with {self.instructor}.\n\n"
            f"Date: {self.class_date}\n"
            f"Time: {self.class_time}\n"
            f"Location: {self.class_location}\n"
            f"Amount: {format_price(self.payment_amount)}\n\n"
            "See you on the mat!"
        )

    def sms_text(self) -> str:
        return (
            f"Thank you for registering for {self.class_name} on {self.class_date} at {self.class_time}. "
            "Your registration has been confirmed. See you there!"
        )


@dataclass(frozen=True)
class ClassCancellationNotice:
    user_email: str
    user_name: str
    class_name: str
    class_date: str
    class_time: str
    instructor: str
    payment_amount: float

    def subject(self) -> str:
        return f"Class Cancelled - {self.class_name}"

    def body(self) -> str:
        return (
            f"Hi {self.user_name},\n\n"
            f"Unfortunately {self.class_name} with {self.instructor} on {self.class_date} "
            f"at {self.class_time} has been cancelled.\n\n"
            f"If you paid {format_price(self.payment_amount)} we will be in touch about a refund "
            "or a place in another class.\n\n"
            "We apologize for any inconvenience."
        )

    def sms_text(self) -> str:
        return (
            f"Unfortunately, {self.class_name} on {self.class_date} at {self.class_time} has been cancelled. "
            "We apologize for any inconvenience."
        )


@dataclass(frozen=True)
class WaiverConfirmation:
    user_email: str
    user_name: str
    waiver_title: str
    waiver_content: str
    agreement_date: str

    def subject(self) -> str:
        return "Waiver Agreement Confirmation - Yoga Class Scheduler"

    def body(self) -> str:
        return (
            f"Hi {self.user_name},\n\n"
            f"On {self.agreement_date} you agreed to \"{self.waiver_title}\". "
            "A copy is included below for your records.\n\n"
            f"{self.waiver_content}"
        )


@dataclass(frozen=True)
class WelcomeMessage:
    user_email: str

    def sms_text(self) -> str:
        return (
            "Welcome to our yoga community! Your account has been created successfully. "
            f"You can now register for classes using {self.user_email}."
        )


# ─────────────────────────────────────────────────────────────
# Transports
# ─────────────────────────────────────────────────────────────
class SmtpMailer:
    def __init__(self, server: str, port: int = 587, use_tls: bool = True,
                 username: str = "", password: str = "", sender: str = ""):
        self.server = server
        self.port = port
        self.use_tls = use_tls
        self.username = username
        self.password = password
        self.sender = sender or username

    @property
    def configured(self) -> bool:
        return bool(self.server and self.sender)

    def send(self, to: str, subject: str, body: str) -> bool:
        if not self.configured:
            log.info(f"[MAIL] not configured; skipping '{subject}' → {to}")
            return False
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(body)
        with smtplib.SMTP(self.server, self.port, timeout=20) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
        log.info(f"[MAIL] sent '{subject}' → {to}")
        return True


class TwilioSms:
    def __init__(self, account_sid: str = "", auth_token: str = "", from_number: str = ""):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client: Optional[TwilioClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _get_client(self) -> TwilioClient:
        if self._client is None:
            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    def send(self, to: str, text: str) -> bool:
        phone = normalize_phone(to)
        if not phone:
            return False
        if not self.configured:
            log.info(f"[SMS] not configured; skipping message → {phone}")
            return False
        message = self._get_client().messages.create(body=text, from_=self.from_number, to=phone)
        log.info(f"[SMS] sent sid={message.sid} → {phone}")
        return True


# ─────────────────────────────────────────────────────────────
# Notifier
# ─────────────────────────────────────────────────────────────
class Notifier:
    def __init__(self, mailer: SmtpMailer, sms: TwilioSms,
                 tz_name: Optional[str] = None, location: str = "Main Studio"):
        self.mailer = mailer
        self.sms = sms
        self.tz_name = tz_name
        self.location = location

    def registration_confirmed(self, profile: Profile, yoga_class: YogaClass, amount: float) -> None:
        msg = RegistrationConfirmation(
            user_email=profile.email,
            user_name=profile.display_name,
            class_name=yoga_class.name,
            class_date=format_class_date(yoga_class.start_time, self.tz_name),
            class_time=format_class_time(yoga_class.start_time, self.tz_name),
            instructor=yoga_class.instructor,
            payment_amount=amount,
            class_location=self.location,
        )
        if profile.email:
            safe_execute(self.mailer.send, profile.email, msg.subject(), msg.body(), label="registration_email")
        if profile.phone:
            safe_execute(self.sms.send, profile.phone, msg.sms_text(), label="registration_sms")

    def class_cancelled(self, yoga_class: YogaClass, registrations: Iterable[Registration]) -> int:
        """Notify every registrant with a known email; returns how many emails went out."""
        sent = 0
        for reg in registrations:
            profile = reg.profile
            if not profile or not profile.email:
                log.info(f"[NOTIFY] registration {reg.id} has no email on file; skipped")
                continue
            msg = ClassCancellationNotice(
                user_email=profile.email,
                user_name=profile.display_name,
                class_name=yoga_class.name,
                class_date=format_class_date(yoga_class.start_time, self.tz_name),
                class_time=format_class_time(yoga_class.start_time, self.tz_name),
                instructor=yoga_class.instructor,
                payment_amount=reg.payment_amount,
            )
            if safe_execute(self.mailer.send, profile.email, msg.subject(), msg.body(), label="cancellation_email"):
                sent += 1
            if profile.phone:
                safe_execute(self.sms.send, profile.phone, msg.sms_text(), label="cancellation_sms")
        return sent

    def waiver_agreed(self, profile: Profile, waiver: Waiver) -> None:
        if not profile.email:
            return
        msg = WaiverConfirmation(
            user_email=profile.email,
            user_name=profile.display_name,
            waiver_title=waiver.title,
            waiver_content=waiver.content,
            agreement_date=format_agreement_date(utcnow(), self.tz_name),
        )
        safe_execute(self.mailer.send, profile.email, msg.subject(), msg.body(), label="waiver_email")

    def welcome(self, email: str, phone: Optional[str]) -> None:
        if phone:
            safe_execute(self.sms.send, phone, WelcomeMessage(user_email=email).sms_text(), label="welcome_sms")
