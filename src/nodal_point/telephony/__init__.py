"""Telephony helpers -- Twilio identifiers, REST client, tokens, phone formatting.

Exports:
    is_call_sid, is_recording_sid: Twilio SID validators.
    resolve_to_call_sid: Narrow partial identifiers to one canonical Call SID.
    TwilioClient: Async Twilio REST client (recordings, transcripts, calls, media).
    format_phone, normalize_phone: US phone display and matching helpers.
"""

from src.nodal_point.telephony.phone import format_phone, normalize_phone
from src.nodal_point.telephony.sids import is_call_sid, is_recording_sid, resolve_to_call_sid
from src.nodal_point.telephony.twilio_client import TwilioClient

__all__ = [
    "TwilioClient",
    "format_phone",
    "is_call_sid",
    "is_recording_sid",
    "normalize_phone",
    "resolve_to_call_sid",
]
