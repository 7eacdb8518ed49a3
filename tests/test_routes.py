from decimal import Decimal
from unittest import mock

import stripe

from models import db
from models.booking import Booking
from models.venue import Venue
from services import wallet
from tests.conftest import login, make_user, add_provider_payment


def booking_body(court, day, start="10:00", end="11:30", **extra):
    body = {"court_id": court.id, "date": day.isoformat(), "start_time": start, "end_time": end}
    body.update(extra)
    return body


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_booking_requires_login(client, court, play_date):
    resp = client.post("/bookings", json=booking_body(court, play_date))
    assert resp.status_code == 401


def test_create_booking_and_conflict(client, court, player, other_player, play_date):
    login(client, player)
    resp = client.post("/bookings", json=booking_body(court, play_date, attendees=4, split_payment=True))
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["total_price"] == "37.50"
    assert data["payment_status"] == "pending"
    assert len(data["shares"]) == 4
    assert data["shares"][0]["total_owed"] == "9.63"

    login(client, other_player)
    resp = client.post("/bookings", json=booking_body(court, play_date, "11:00", "12:00"))
    assert resp.status_code == 409
    assert resp.get_json() == {"error": "Slot no longer available"}


def test_create_booking_validation_errors(client, court, player, play_date):
    login(client, player)
    assert client.post("/bookings", json={"court_id": court.id}).status_code == 400
    resp = client.post("/bookings", json=booking_body(court, play_date, "12:00", "11:00"))
    assert resp.status_code == 400
    assert "error" in resp.get_json()
    assert client.post("/bookings", json=booking_body(court, play_date, attendees=0)).status_code == 400


def test_wallet_payment_with_insufficient_funds(client, court, player, play_date):
    login(client, player)
    resp = client.post("/bookings", json=booking_body(court, play_date, pay_with_wallet=True))
    assert resp.status_code == 402
    assert Booking.query.count() == 0


def test_availability(client, court, player, play_date):
    login(client, player)
    client.post("/bookings", json=booking_body(court, play_date, "10:00", "11:00"))

    resp = client.get(f"/courts/{court.id}/availability?date={play_date.isoformat()}&start_time=10:30&end_time=11:30")
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["booked"][0]["start_time"] == "10:00"
    assert data["available"] is False

    resp = client.get(f"/courts/{court.id}/availability?date={play_date.isoformat()}&start_time=11:00&end_time=12:00")
    assert resp.get_json()["available"] is True


def test_my_bookings_and_privacy(client, court, player, other_player, play_date):
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date)).get_json()["id"]
    assert [b["id"] for b in client.get("/bookings/me").get_json()] == [booking_id]

    login(client, other_player)
    assert client.get(f"/bookings/{booking_id}").status_code == 404
    assert client.post(f"/bookings/{booking_id}/cancel").status_code == 404


def test_player_cancel(client, court, player, play_date):
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date)).get_json()["id"]

    resp = client.post(f"/bookings/{booking_id}/cancel", json={"reason": "Injury"})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "cancelled"
    assert resp.get_json()["cancellation_reason"] == "Injury"
    assert client.post(f"/bookings/{booking_id}/cancel").status_code == 400


def test_admin_refund_of_wallet_paid_booking(client, court, player, admin, play_date):
    wallet.credit(player.id, court.venue_id, Decimal("40.00"), "Top-up")
    db.session.commit()
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date, pay_with_wallet=True)).get_json()["id"]

    login(client, admin)
    resp = client.post(f"/bookings/{booking_id}/refund", json={"reason": "Court flooded"})
    assert resp.status_code == 200
    assert resp.get_json()["refund_status"] == "credited"
    assert client.post(f"/bookings/{booking_id}/refund").status_code == 400

    ledger = client.get(f"/admin/venues/{court.venue_id}/ledger").get_json()
    assert ledger["totals"] == {"credit": "37.50", "debit": "37.50", "net": "0.00"}
    cancelled = client.get(f"/admin/venues/{court.venue_id}/cancelled-bookings").get_json()
    assert [b["id"] for b in cancelled] == [booking_id]


def test_admin_of_other_venue_is_forbidden(client, court, player, play_date):
    stranger = make_user("stranger@example.com", "ADMIN")
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date)).get_json()["id"]

    login(client, stranger)
    assert client.post(f"/bookings/{booking_id}/admin_cancel").status_code == 403
    assert client.get(f"/admin/venues/{court.venue_id}/ledger").status_code == 403


def test_players_cannot_use_admin_routes(client, court, player):
    login(client, player)
    assert client.get(f"/admin/venues/{court.venue_id}/ledger").status_code == 403
    assert client.post("/venues", json={"name": "Mine"}).status_code == 403


def test_admin_manages_venue_and_courts(client, admin):
    login(client, admin)
    resp = client.post("/venues", json={"name": "Zuid", "city": "Rotterdam"})
    assert resp.status_code == 201
    venue_id = resp.get_json()["id"]

    resp = client.post(f"/venues/{venue_id}/courts", json={"name": "Court A", "hourly_rate": "30.00", "is_outdoor": False})
    assert resp.status_code == 201
    court_id = resp.get_json()["id"]
    assert resp.get_json()["hourly_rate"] == "30.00"
    assert client.post(f"/venues/{venue_id}/courts", json={"name": "Court A", "hourly_rate": "30"}).status_code == 409

    resp = client.post(f"/courts/{court_id}/status", json={"status": "maintenance"})
    assert resp.get_json()["status"] == "maintenance"
    assert client.post(f"/courts/{court_id}/status", json={"status": "closed"}).status_code == 400
    assert db.session.get(Venue, venue_id).courts[0].status == "maintenance"


def test_checkout_without_provider_is_bad_gateway(client, court, player, play_date):
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date)).get_json()["id"]
    resp = client.post(f"/payments/bookings/{booking_id}/checkout")
    assert resp.status_code == 502


def test_wallet_overview(client, court, player):
    wallet.credit(player.id, court.venue_id, Decimal("12.00"), "Top-up")
    db.session.commit()
    login(client, player)

    data = client.get(f"/wallet/{court.venue_id}").get_json()
    assert data["balance"] == "12.00"
    assert data["transactions"][0]["kind"] == "CREDIT"


def _stripe_event(event_type, obj):
    return {"type": event_type, "data": {"object": obj}}


def test_stripe_webhook_marks_booking_paid(client, court, player, play_date):
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date)).get_json()["id"]
    add_provider_payment(db.session.get(Booking, booking_id), "cs_live_1")

    event = _stripe_event("checkout.session.completed",
                          {"id": "cs_live_1", "payment_intent": "pi_live_1", "payment_status": "paid"})
    with mock.patch("stripe.Webhook.construct_event", return_value=event):
        resp = client.post("/webhooks/stripe", data=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
        assert resp.get_json()["outcome"] == "paid"
        replay = client.post("/webhooks/stripe", data=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})

    assert resp.status_code == 200
    assert replay.status_code == 200
    assert replay.get_json()["outcome"] == "noop"
    assert db.session.get(Booking, booking_id).payment_status == "paid"


def test_stripe_webhook_unknown_reference_is_acknowledged(client):
    event = _stripe_event("checkout.session.completed", {"id": "cs_nobody", "payment_status": "paid"})
    with mock.patch("stripe.Webhook.construct_event", return_value=event):
        resp = client.post("/webhooks/stripe", data=b"{}", headers={"Stripe-Signature": "sig"})
    assert resp.status_code == 200
    assert resp.get_json()["outcome"] == "ignored"


def test_stripe_webhook_rejects_bad_signature(client):
    error = stripe.SignatureVerificationError("bad", "sig")
    with mock.patch("stripe.Webhook.construct_event", side_effect=error):
        resp = client.post("/webhooks/stripe", data=b"{}", headers={"Stripe-Signature": "sig"})
    assert resp.status_code == 400


def test_cron_requires_secret(client):
    assert client.get("/cron/rain-check").status_code == 401
    assert client.get("/cron/rain-check", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_cron_runs_sweeper(client):
    with mock.patch("routes.cron.sweep", return_value=3) as sweeper:
        resp = client.post("/cron/rain-check", headers={"Authorization": "Bearer cron-secret"})
    sweeper.assert_called_once_with()
    assert resp.status_code == 200
    assert resp.get_json()["processed_count"] == 3


def test_match_result_and_rating_endpoints(client, court, player, play_date):
    mates = [make_user(f"mate{i}@example.com", "PLAYER") for i in range(3)]
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date, public_match=True)).get_json()["id"]

    resp = client.post(f"/bookings/{booking_id}/result", json={
        "team1": [player.id, mates[0].id],
        "team2": [mates[1].id, mates[2].id],
        "scores": [[6, 2], [6, 3]],
    })
    assert resp.status_code == 200
    assert resp.get_json()["winner_team"] == 1
    assert resp.get_json()["ratings_applied"] is True

    rating = client.get(f"/players/{player.id}/rating").get_json()
    assert rating["rating"] > 2.5
    assert rating["matches_played"] == 1


def test_join_match_endpoint(client, court, player, other_player, play_date):
    login(client, player)
    match_id = client.post("/bookings", json=booking_body(court, play_date, public_match=True)).get_json()["match_id"]

    login(client, other_player)
    resp = client.post(f"/matches/{match_id}/join")
    assert resp.status_code == 201
    assert resp.get_json()["team"] == 1
    assert client.post(f"/matches/{match_id}/join").status_code == 409


def test_admin_moves_booking(client, court, player, other_player, admin, play_date):
    login(client, other_player)
    client.post("/bookings", json=booking_body(court, play_date, "13:00", "14:00"))
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date)).get_json()["id"]

    assert client.post(f"/bookings/{booking_id}/move", json={"start_time": "15:00"}).status_code == 403

    login(client, admin)
    assert client.post(f"/bookings/{booking_id}/move", json={}).status_code == 400
    resp = client.post(f"/bookings/{booking_id}/move", json={"start_time": "15:00"})
    assert resp.status_code == 200
    assert (resp.get_json()["start_time"], resp.get_json()["end_time"]) == ("15:00", "16:30")
    assert resp.get_json()["date"] == play_date.isoformat()

    resp = client.post(f"/bookings/{booking_id}/move", json={"start_time": "12:30", "date": play_date.isoformat()})
    assert resp.status_code == 409


def test_admin_marks_booking_paid(client, court, player, admin, play_date):
    login(client, player)
    booking_id = client.post("/bookings", json=booking_body(court, play_date)).get_json()["id"]
    assert client.post(f"/bookings/{booking_id}/mark-paid").status_code == 403

    stranger = make_user("stranger@example.com", "ADMIN")
    login(client, stranger)
    assert client.post(f"/bookings/{booking_id}/mark-paid").status_code == 403

    login(client, admin)
    resp = client.post(f"/bookings/{booking_id}/mark-paid")
    assert resp.status_code == 200
    assert resp.get_json()["payment_status"] == "paid"
    assert resp.get_json()["payment_method"] == "manual"

    again = client.post(f"/bookings/{booking_id}/mark-paid")
    assert again.status_code == 200
    assert again.get_json()["payment_method"] == "manual"


def test_venue_timezone_is_validated(client, admin):
    login(client, admin)
    resp = client.post("/venues", json={"name": "Oost", "timezone": "Europe/Amsterdam"})
    assert resp.status_code == 201
    assert resp.get_json()["timezone"] == "Europe/Amsterdam"

    resp = client.post("/venues", json={"name": "Nowhere", "timezone": "Not/AZone"})
    assert resp.status_code == 400
