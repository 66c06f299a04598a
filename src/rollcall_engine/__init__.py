"""Rollcall-Engine: geofenced, QR-driven event attendance with moderator review."""

from rollcall_engine.qr.codec import QRPayload, decode_payload, encode_payload, is_valid_payload
from rollcall_engine.geofence.validator import GeofenceVerdict, evaluate_attempt, haversine_distance

__all__ = [
    "QRPayload",
    "encode_payload",
    "decode_payload",
    "is_valid_payload",
    "GeofenceVerdict",
    "evaluate_attempt",
    "haversine_distance",
]
__version__ = "0.1.0"
