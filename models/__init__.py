from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .venue import Venue
from .court import Court
from .booking import Booking, BookingShare
from .payment import Payment
from .ledger import LedgerEntry
from .wallet import Wallet, WalletTransaction
from .match import OpenMatch, MatchPlayer, MatchResult, PlayerRating
from .occupancy import CourtOccupancy
