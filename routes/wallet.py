from flask import Blueprint, jsonify, g

from services import wallet as wallet_service
from utils.auth_context import login_required

wallet_bp = Blueprint("wallet", __name__, url_prefix="/wallet")


@wallet_bp.get("/<int:venue_id>")
@login_required
def wallet_overview(venue_id: int):
    movements = wallet_service.recent_transactions(g.user.id, venue_id)
    return jsonify(
        venue_id=venue_id,
        balance=str(wallet_service.get_balance(g.user.id, venue_id)),
        transactions=[
            {
                "kind": t.kind,
                "amount": str(t.amount),
                "balance_after": str(t.balance_after),
                "reason": t.reason,
                "reference": t.reference,
                "created_at": t.created_at.isoformat(),
            }
            for t in movements
        ],
    ), 200
