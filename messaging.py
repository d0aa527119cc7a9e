"""
Outbound client messaging.

Drafts are written by a remote chat-completions model (OpenRouter-compatible
endpoint). Any failure collapses into a fixed fallback text; nothing raises
past generate_draft_message. Sending is a hand-off to WhatsApp or mail links.
"""

from __future__ import annotations

import logging
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterable, Optional
from urllib.parse import quote

import pytz
import requests

import config
from models import AgentProfile, Booking, ensure_utc

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("offer", "reminder", "status")
TONES = ("professional", "friendly", "urgent")

NOT_CONFIGURED_MESSAGE = "Message drafting is not configured. Please add an API key in settings."
EMPTY_RESPONSE_MESSAGE = "Could not generate message."
ERROR_MESSAGE = "Error generating message. Please check your connection or try again later."
NO_PHONE_MESSAGE = "No phone number found in passenger details. Please copy the text manually."


# ==================== PROMPT ====================

def _display(value, with_time: bool = False) -> str:
    local = ensure_utc(value).astimezone(pytz.timezone(config.DISPLAY_TIMEZONE))
    return local.strftime("%d/%m/%Y %H:%M" if with_time else "%d/%m/%Y")


def build_prompt(booking: Booking, message_type: str, tone: str) -> str:
    pax_names = ", ".join(booking.passenger_names)
    return_info = f" - Return: {_display(booking.return_date)}" if booking.return_date else ""
    return f"""
You are a professional travel agent assistant.
Write a short, clear {message_type} message for a {booking.category.value} via WhatsApp or Email.

Context:
Client/Contact: {booking.client_name}
Passengers: {pax_names}

Booking Details:
PNR: {booking.pnr}
Airline: {booking.airline}
Route: {booking.route} ({booking.trip_type.value})
Travel Date: {_display(booking.departure_date)}{return_info}
Price: {booking.price} {booking.currency}
Deadline: {_display(booking.ticketing_deadline, with_time=True)}
Status: {booking.status.value}

Instructions:
- Tone: {tone}
- Keep it concise and professional.
- Include the PNR and Deadline clearly.
- Do not use hashtags.
- Write in Modern Standard Arabic if the client name sounds Arabic, otherwise in English or French as is usual for agencies in Morocco.
""".strip()


# ==================== TEXT GENERATION ====================

def _call_llm_raw(prompt: str, session=None) -> Optional[str]:
    """
    Make the chat-completions call and return the raw content string.
    Returns None on HTTP / network error.
    """
    http = session or requests
    try:
        response = http.post(
            config.OPENROUTER_URL,
            headers={
                "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
                "Content-Type": "application/json",
            },
            json={
                "model": config.MODEL,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": config.MAX_TOKENS,
                "temperature": config.TEMPERATURE,
            },
            timeout=config.LLM_TIMEOUT,
        )
        if response.status_code != 200:
            logger.error("Draft API error %s: %s", response.status_code, response.text[:300])
            return None
        content = response.json()["choices"][0]["message"]["content"] or ""
        # Strip markdown code fences
        content = re.sub(r"^```\w*\s*", "", content.strip())
        content = re.sub(r"\s*```$", "", content)
        return content.strip()
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
        logger.error("Draft API call failed: %s", e)
        return None


def generate_draft_message(booking: Booking, message_type: str = "offer",
                           tone: str = "professional", session=None) -> str:
    """Draft a client message for the booking, or a fixed fallback text."""
    if message_type not in MESSAGE_TYPES:
        message_type = "offer"
    if tone not in TONES:
        tone = "professional"
    if not config.OPENROUTER_API_KEY:
        logger.warning("OPENROUTER_API_KEY is not set; returning fallback draft")
        return NOT_CONFIGURED_MESSAGE

    content = _call_llm_raw(build_prompt(booking, message_type, tone), session=session)
    if content is None:
        return ERROR_MESSAGE
    return content or EMPTY_RESPONSE_MESSAGE


def append_signature(text: str, profile: AgentProfile) -> str:
    return (
        f"{text}\n\nBest regards,\n{profile.name}\n{profile.agency_name}"
        f"\n📞 {profile.phone}\n📧 {profile.email}"
    )


# ==================== LINKS ====================

def whatsapp_link(phone: str, message: Optional[str] = None) -> Optional[str]:
    digits = re.sub(r"[^0-9]", "", phone or "")
    if not digits:
        return None
    url = f"https://wa.me/{digits}"
    if message:
        url += f"?text={quote(message, safe='')}"
    return url


def booking_whatsapp_link(booking: Booking, message: str) -> Optional[str]:
    """Link to the first passenger that has a phone number."""
    for passenger in booking.passengers:
        link = whatsapp_link(passenger.phone, message)
        if link:
            return link
    return None


def mailto_link(email: str, subject: Optional[str] = None, body: Optional[str] = None) -> Optional[str]:
    email = (email or "").strip()
    if not email:
        return None
    params = []
    if subject:
        params.append(f"subject={quote(subject)}")
    if body:
        params.append(f"body={quote(body)}")
    return f"mailto:{email}" + (f"?{'&'.join(params)}" if params else "")


def broadcast_mailto(emails: Iterable[str], subject: str) -> Optional[str]:
    """One mail to every address as BCC; None when there is nobody to write to."""
    recipients = [e.strip() for e in emails if e and e.strip()]
    if not recipients:
        return None
    return f"mailto:?bcc={','.join(recipients)}&subject={quote(subject)}"


# ==================== DRAFT TRACKER ====================

class DraftTracker:
    """
    Runs draft requests off the caller's thread, keyed by the booking open
    in the message panel. Opening another booking or closing the panel
    abandons the pending request; its result is dropped when it arrives.
    """

    def __init__(self, generator: Callable[..., str] = generate_draft_message,
                 executor: Optional[ThreadPoolExecutor] = None):
        self._generator = generator
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="draft")
        # on_ready may call open() or close()
        self._lock = threading.RLock()
        self._active_key: Optional[str] = None
        self._generation = 0
        self._future: Optional[Future] = None
        self._latest: Optional[str] = None

    @property
    def active_key(self) -> Optional[str]:
        return self._active_key

    @property
    def latest(self) -> Optional[str]:
        return self._latest

    def open(self, booking: Booking, message_type: str = "offer", tone: str = "professional",
             on_ready: Optional[Callable[[str], None]] = None) -> Future:
        """
        Start a draft for the booking. The returned future resolves to the
        text once delivered, or None when the request went stale.
        """
        with self._lock:
            self._abandon()
            self._active_key = booking.id
            self._latest = None
            future = self._executor.submit(self._run, self._generation, booking, message_type, tone, on_ready)
            self._future = future
        return future

    def close(self) -> None:
        with self._lock:
            self._abandon()
            self._active_key = None
            self._latest = None

    def shutdown(self) -> None:
        self.close()
        self._executor.shutdown(wait=False)

    def _abandon(self) -> None:
        self._generation += 1
        if self._future is not None and not self._future.done():
            self._future.cancel()
        self._future = None

    def _run(self, generation: int, booking: Booking, message_type: str, tone: str,
             on_ready: Optional[Callable[[str], None]]) -> Optional[str]:
        text = self._generator(booking, message_type, tone)
        # close() blocks until an in-flight delivery finishes
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding stale draft for booking %s", booking.id)
                return None
            self._latest = text
            if on_ready is not None:
                on_ready(text)
        return text
