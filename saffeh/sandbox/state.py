# saffeh/sandbox/state.py
"""
In-memory state of the sandbox backend.

Holds users, sessions, the parking catalog, reservations, checkout sessions,
vouchers and the activity log. Everything is lost on restart; `seed()`
creates one location with two gates (one with free spots, one full).
"""

import hashlib
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from saffeh.config import settings
from saffeh.schemas.catalog import Gate, Location, Spot
from saffeh.schemas.reservation import PlaceRef, Reservation, ReservationStatus
from saffeh.schemas.user import Activity, User
from saffeh.schemas.voucher import Voucher
from saffeh.services.reservation_rules import is_reachable
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


@dataclass
class Account:
    user: User
    password_hash: str


@dataclass
class CheckoutRecord:
    session_id: str
    reservation_id: str
    user_id: str
    attempts: int = 0
    paid: bool = False


@dataclass
class SandboxState:
    confirm_after_attempts: int = field(default_factory=lambda: settings.SANDBOX_CONFIRM_AFTER_ATTEMPTS)
    accounts: dict[str, Account] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)              # bearer token → user id
    reset_tokens: dict[str, str] = field(default_factory=dict)        # reset token → user id
    locations: dict[str, Location] = field(default_factory=dict)
    gates: dict[str, Gate] = field(default_factory=dict)
    spots: dict[str, list[Spot]] = field(default_factory=dict)        # gate id → spots
    reservations: dict[str, Reservation] = field(default_factory=dict)
    owners: dict[str, str] = field(default_factory=dict)              # reservation id → user id
    held_spots: dict[str, str] = field(default_factory=dict)          # reservation id → spot id
    checkouts: dict[str, CheckoutRecord] = field(default_factory=dict)
    vouchers: dict[str, Voucher] = field(default_factory=dict)
    voucher_owners: dict[str, str] = field(default_factory=dict)
    activities: list[tuple[str, Activity]] = field(default_factory=list)

    # ── catalog ──────────────────────────────────────────────────────────
    def seed(self) -> "SandboxState":
        now = utcnow()
        loc = Location(id="loc_downtown", name="Downtown Garage", city="Amman",
                       description="Covered parking, 3 levels", created_at=now, updated_at=now)
        self.locations[str(loc.id)] = loc
        for gate_id, name, spots in (
            ("gate_north", "North Entrance", [("A1", "FREE", "FREE"), ("A2", "FREE", "occupied"),
                                               ("A3", "FREE", "free"), ("A4", "RESERVED", "FREE")]),
            ("gate_south", "South Entrance", [("B1", "FREE", "OCCUPIED"), ("B2", "OCCUPIED", "OCCUPIED")]),
        ):
            self.gates[gate_id] = Gate(id=gate_id, name=name, location_id=loc.id)
            self.spots[gate_id] = [
                Spot(id=f"{gate_id}_{label}", label=label, block=label[0], status=status, cv_status=cv)
                for label, status, cv in spots
            ]
        return self

    # ── accounts ─────────────────────────────────────────────────────────
    def find_account_by_email(self, email: str) -> Optional[Account]:
        email = email.lower()
        return next((a for a in self.accounts.values() if a.user.email.lower() == email), None)

    def create_account(self, full_name: str, email: str, password: str, accepted_terms: bool) -> Account:
        user = User(id=new_id("usr"), full_name=full_name, email=email.lower(), role="user",
                    has_accepted_terms=accepted_terms, created_at=utcnow())
        account = Account(user=user, password_hash=hash_password(password))
        self.accounts[str(user.id)] = account
        return account

    def issue_token(self, user_id: str) -> str:
        token = secrets.token_urlsafe(24)
        self.tokens[token] = user_id
        return token

    def user_for_token(self, token: str) -> Optional[Account]:
        user_id = self.tokens.get(token)
        return self.accounts.get(user_id) if user_id else None

    def log(self, user_id: str, action: str, entity_type: str = None, entity_id: str = None, **metadata):
        self.activities.append((user_id, Activity(
            id=new_id("act"), action=action, entity_type=entity_type, entity_id=entity_id,
            metadata=metadata or None, created_at=utcnow(),
        )))

    # ── reservations ─────────────────────────────────────────────────────
    def free_spot(self, gate_id: str) -> Optional[Spot]:
        return next(
            (s for s in self.spots.get(gate_id, [])
             if (s.cv_status or "").upper() == "FREE" and s.status == "FREE"),
            None,
        )

    def set_spot_status(self, reservation_id: str, status: str):
        spot_id = self.held_spots.get(reservation_id)
        for spots in self.spots.values():
            for spot in spots:
                if spot.id == spot_id:
                    spot.status = status

    def user_vouchers(self, user_id: str) -> list[Voucher]:
        return [v for vid, v in self.vouchers.items() if self.voucher_owners.get(vid) == user_id]

    def in_flight_ids(self, user_id: str) -> set[str]:
        return {
            rid for rid, r in self.reservations.items()
            if self.owners.get(rid) == user_id
            and r.status in (ReservationStatus.PENDING, ReservationStatus.ACTIVE, ReservationStatus.CONFIRMED)
        }

    def create_reservation(self, user_id: str, location: Location, gate: Gate, spot: Spot) -> Reservation:
        now = utcnow()
        reservation = Reservation(
            id=new_id("res"),
            status=ReservationStatus.PENDING,
            valid_from=now,
            valid_until=now + timedelta(minutes=settings.SANDBOX_VALIDITY_MINUTES),
            created_at=now,
            location_id=location.id,
            gate_id=gate.id,
            location=PlaceRef(id=location.id, name=location.name),
            gate=PlaceRef(id=gate.id, name=gate.name),
        )
        rid = str(reservation.id)
        self.reservations[rid] = reservation
        self.owners[rid] = user_id
        self.held_spots[rid] = str(spot.id)
        spot.status = "RESERVED"
        return reservation

    def open_checkout(self, reservation_id: str, user_id: str) -> CheckoutRecord:
        record = CheckoutRecord(session_id=f"cs_test_{secrets.token_hex(12)}",
                                reservation_id=reservation_id, user_id=user_id)
        self.checkouts[record.session_id] = record
        return record

    def move(self, reservation_id: str, target: ReservationStatus, **fields) -> Reservation:
        current = self.reservations[reservation_id]
        if target != current.status and not is_reachable(current.status, target):
            raise ValueError(f"{current.status.value} → {target.value} is not allowed")
        updated = current.model_copy(update={"status": target, **fields})
        self.reservations[reservation_id] = updated
        logger.info(f"[SANDBOX] {reservation_id}: {current.status.value} → {target.value}")
        return updated

    def lapse_if_expired(self, reservation_id: str) -> Reservation:
        """Expire a reservation whose admission window passed without a scan."""
        r = self.reservations[reservation_id]
        if (
            r.valid_until is not None and r.valid_until < utcnow()
            and r.consumed_at is None
            and r.status in (ReservationStatus.PENDING, ReservationStatus.ACTIVE, ReservationStatus.CONFIRMED)
        ):
            self.set_spot_status(reservation_id, "FREE")
            return self.move(reservation_id, ReservationStatus.EXPIRED)
        return r

    def find_by_qr_token(self, qr_token: str) -> Optional[Reservation]:
        return next((r for r in self.reservations.values() if r.qr_token and r.qr_token == qr_token), None)

    def issue_refund_voucher(self, user_id: str) -> Voucher:
        now = utcnow()
        voucher = Voucher(
            id=new_id("vch"),
            code=f"REFUND-{secrets.token_hex(3).upper()}",
            percentage=settings.SANDBOX_REFUND_VOUCHER_PERCENTAGE,
            expires_at=now + timedelta(days=30),
            created_at=now,
        )
        self.vouchers[str(voucher.id)] = voucher
        self.voucher_owners[str(voucher.id)] = user_id
        return voucher


def reservation_json(reservation: Reservation) -> dict:
    return reservation.model_dump(by_alias=True, mode="json")
