"""
tests/test_api_change_requests.py — Change request lifecycle over HTTP.

Covers:
    1.  Submit a CR with proposed solutions
    2.  Input validation (missing fields, unknown type, unknown user)
    3.  Accepting a solution extends the seed and shifts blocked packages
    4.  Denying leaves the schedule alone
    5.  Review guards: already reviewed, foreign solution, no solution chosen
    6.  Failed propagation rolls the whole review back
    7.  Slack failure after commit → 500, review stays persisted
    8.  Soft delete
    9.  Slack threads stored on submit, replied to on review

Marker: integration (full HTTP round-trip through Flask test client).
"""

from datetime import date
from unittest.mock import patch

import pytest

from finishline.core.exceptions import ExternalNotificationError, NotFoundError
from finishline.integrations.slack_gateway import SlackGateway
from finishline.models import db
from finishline.models.change_request import ChangeRequest, MessageInfo
from finishline.models.team import Team
from finishline.models.wbs import WbsElement, WorkPackage

pytestmark = pytest.mark.integration

BASE = "/api/v1/change-requests"


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════


def _headers(user):
    return {"X-User-Id": str(user.id)}


def _project(team=None) -> WbsElement:
    element = WbsElement(car_number=1, project_number=3, work_package_number=0,
                         name="Impact Attenuator", team_id=team.id if team else None)
    db.session.add(element)
    db.session.commit()
    return element


def _work_package(number, start=date(2023, 1, 2), duration=3) -> WbsElement:
    element = WbsElement(car_number=1, project_number=3, work_package_number=number,
                         name=f"Package {number}")
    element.work_package = WorkPackage(start_date=start, duration=duration)
    db.session.add(element)
    db.session.commit()
    return element


def _block(blocker, *blocked):
    blocker.blocking.extend(blocked)
    db.session.commit()


def _submit(client, user, element, cr_type="ISSUE", solutions=None):
    """Submit a CR and return its dict."""
    rv = client.post(BASE, headers=_headers(user), json={
        "wbs_element_id": element.id,
        "type": cr_type,
        "what": "Redesign mounting plate",
        "proposed_solutions": solutions if solutions is not None else [
            {"description": "Use thicker plate", "scope_impact": "none",
             "timeline_impact": 2, "budget_impact": 40},
        ],
    })
    assert rv.status_code == 201, rv.get_json()
    return rv.get_json()


def _review(client, user, cr_id, **body):
    return client.post(f"{BASE}/{cr_id}/review", headers=_headers(user), json=body)


def _element(element_id) -> WbsElement:
    return db.session.get(WbsElement, element_id)


# ═════════════════════════════════════════════════════════════════════════════
# Submit
# ═════════════════════════════════════════════════════════════════════════════


class TestSubmitChangeRequest:

    def test_submit_creates_open_cr(self, client, submitter):
        _project()
        wp = _work_package(1)

        cr = _submit(client, submitter, wp)

        assert cr["status"] == "Open"
        assert cr["wbs_num"] == "1.3.1"
        assert cr["submitter_id"] == submitter.id
        assert len(cr["proposed_solutions"]) == 1
        assert cr["proposed_solutions"][0]["timeline_impact"] == 2
        assert cr["date_implemented"] is None

    def test_missing_fields(self, client, submitter):
        rv = client.post(BASE, headers=_headers(submitter), json={"type": "ISSUE"})
        assert rv.status_code == 400

    def test_unknown_type(self, client, submitter):
        wp = _work_package(1)
        rv = client.post(BASE, headers=_headers(submitter),
                         json={"wbs_element_id": wp.id, "type": "REWRITE"})
        assert rv.status_code == 422
        assert rv.get_json()["code"] == "ERR_VALIDATION_RULE"

    def test_unknown_user(self, client):
        wp = _work_package(1)
        rv = client.post(BASE, headers={"X-User-Id": "999"},
                         json={"wbs_element_id": wp.id, "type": "ISSUE"})
        assert rv.status_code == 404

    def test_unknown_element(self, client, submitter):
        rv = client.post(BASE, headers=_headers(submitter),
                         json={"wbs_element_id": 4242, "type": "ISSUE"})
        assert rv.status_code == 404

    def test_non_numeric_impact_rejected(self, client, submitter):
        wp = _work_package(1)
        rv = client.post(BASE, headers=_headers(submitter), json={
            "wbs_element_id": wp.id, "type": "ISSUE",
            "proposed_solutions": [{"description": "x", "timeline_impact": "two"}],
        })

        assert rv.status_code == 422
        assert rv.get_json()["details"] == {"proposed_solutions": 0, "timeline_impact": "two"}
        assert ChangeRequest.query.count() == 0

    def test_boolean_budget_impact_rejected(self, client, submitter):
        wp = _work_package(1)
        rv = client.post(BASE, headers=_headers(submitter), json={
            "wbs_element_id": wp.id, "type": "ISSUE",
            "proposed_solutions": [{"budget_impact": True}],
        })
        assert rv.status_code == 422

    def test_non_object_solution_rejected(self, client, submitter):
        wp = _work_package(1)
        rv = client.post(BASE, headers=_headers(submitter), json={
            "wbs_element_id": wp.id, "type": "ISSUE",
            "proposed_solutions": [{"timeline_impact": 1}, "use a bigger bolt"],
        })

        assert rv.status_code == 422
        assert rv.get_json()["details"] == {"proposed_solutions": 1}
        assert ChangeRequest.query.count() == 0

    def test_list_and_get(self, client, submitter):
        wp = _work_package(1)
        cr = _submit(client, submitter, wp)

        listed = client.get(BASE).get_json()
        assert listed["total"] == 1
        assert listed["items"][0]["id"] == cr["id"]

        detail = client.get(f"{BASE}/{cr['id']}").get_json()
        assert detail["what"] == "Redesign mounting plate"


# ═════════════════════════════════════════════════════════════════════════════
# Review
# ═════════════════════════════════════════════════════════════════════════════


class TestReviewChangeRequest:

    def test_accept_extends_seed_and_shifts_blocked(self, client, submitter, reviewer):
        seed = _work_package(1, duration=3)
        blocked = _work_package(2, start=date(2023, 1, 23))
        downstream = _work_package(3, start=date(2023, 2, 13))
        _block(seed, blocked)
        _block(blocked, downstream)
        cr = _submit(client, submitter, seed)
        ps_id = cr["proposed_solutions"][0]["id"]

        rv = _review(client, reviewer, cr["id"], accepted=True, review_notes="ok", ps_id=ps_id)

        assert rv.status_code == 200, rv.get_json()
        body = rv.get_json()
        assert body["status"] == "Implemented"
        assert body["reviewer_id"] == reviewer.id
        assert body["proposed_solutions"][0]["approved"] is True
        assert _element(seed.id).work_package.duration == 5
        assert _element(seed.id).work_package.start_date == date(2023, 1, 2)
        assert _element(blocked.id).work_package.start_date == date(2023, 2, 6)
        assert _element(downstream.id).work_package.start_date == date(2023, 2, 27)

        details = sorted(c["detail"] for c in body["changes"])
        assert '"Duration" changed from 3 weeks to 5 weeks' in details
        assert '"Start Date" changed from 1/23/2023 to 2/6/2023' in details
        assert len(details) == 3

    def test_accept_without_timeline_impact_is_accepted(self, client, submitter, reviewer):
        wp = _work_package(1)
        cr = _submit(client, submitter, wp, solutions=[
            {"description": "Swap bolts", "timeline_impact": 0, "budget_impact": 5},
        ])

        rv = _review(client, reviewer, cr["id"], accepted=True,
                     ps_id=cr["proposed_solutions"][0]["id"])

        assert rv.get_json()["status"] == "Accepted"
        assert rv.get_json()["changes"] == []

    def test_accept_activation_without_solution(self, client, submitter, reviewer):
        wp = _work_package(1)
        cr = _submit(client, submitter, wp, cr_type="ACTIVATION", solutions=[])

        rv = _review(client, reviewer, cr["id"], accepted=True)

        assert rv.status_code == 200
        assert rv.get_json()["status"] == "Accepted"

    def test_deny_leaves_schedule(self, client, submitter, reviewer):
        seed, blocked = _work_package(1), _work_package(2)
        _block(seed, blocked)
        cr = _submit(client, submitter, seed)

        rv = _review(client, reviewer, cr["id"], accepted=False, review_notes="too late")

        assert rv.status_code == 200
        assert rv.get_json()["status"] == "Denied"
        assert _element(seed.id).work_package.duration == 3
        assert _element(blocked.id).work_package.start_date == date(2023, 1, 2)

    def test_review_twice_rejected(self, client, submitter, reviewer):
        cr = _submit(client, submitter, _work_package(1))
        _review(client, reviewer, cr["id"], accepted=False)

        rv = _review(client, reviewer, cr["id"], accepted=False)

        assert rv.status_code == 400
        assert "already been reviewed" in rv.get_json()["error"]

    def test_ps_id_must_not_be_boolean(self, client, submitter, reviewer):
        cr = _submit(client, submitter, _work_package(1))

        rv = _review(client, reviewer, cr["id"], accepted=True, ps_id=True)

        assert rv.status_code == 400
        assert db.session.get(ChangeRequest, cr["id"]).date_reviewed is None

    def test_accepted_must_be_boolean(self, client, submitter, reviewer):
        cr = _submit(client, submitter, _work_package(1))
        rv = _review(client, reviewer, cr["id"], accepted="yes")
        assert rv.status_code == 400

    def test_foreign_solution_rejected(self, client, submitter, reviewer):
        wp = _work_package(1)
        first = _submit(client, submitter, wp)
        second = _submit(client, submitter, wp)

        rv = _review(client, reviewer, second["id"], accepted=True,
                     ps_id=first["proposed_solutions"][0]["id"])

        assert rv.status_code == 404

    def test_accept_standard_cr_requires_solution(self, client, submitter, reviewer):
        cr = _submit(client, submitter, _work_package(1))
        rv = _review(client, reviewer, cr["id"], accepted=True)
        assert rv.status_code == 422

    def test_review_on_deleted_element_rejected(self, client, submitter, reviewer):
        wp = _work_package(1)
        cr = _submit(client, submitter, wp)
        assert client.delete(f"/api/v1/wbs-elements/{wp.id}", headers=_headers(reviewer)).status_code == 200

        rv = _review(client, reviewer, cr["id"], accepted=False)

        assert rv.status_code == 400

    def test_failed_propagation_rolls_back(self, client, submitter, reviewer):
        seed, blocked = _work_package(1), _work_package(2)
        _block(seed, blocked)
        cr = _submit(client, submitter, seed)

        with patch("finishline.services.change_request_service.update_blocking",
                   side_effect=NotFoundError("WBS Element", 77)):
            rv = _review(client, reviewer, cr["id"], accepted=True,
                         ps_id=cr["proposed_solutions"][0]["id"])

        assert rv.status_code == 404
        stored = db.session.get(ChangeRequest, cr["id"])
        assert stored.date_reviewed is None
        assert stored.accepted is None
        assert stored.changes == []
        assert stored.proposed_solutions[0].approved is False
        assert _element(seed.id).work_package.duration == 3


# ═════════════════════════════════════════════════════════════════════════════
# Delete
# ═════════════════════════════════════════════════════════════════════════════


class TestDeleteChangeRequest:

    def test_delete_unreviewed(self, client, submitter):
        cr = _submit(client, submitter, _work_package(1))

        rv = client.delete(f"{BASE}/{cr['id']}", headers=_headers(submitter))

        assert rv.status_code == 200
        assert client.get(f"{BASE}/{cr['id']}").status_code == 404
        assert client.get(BASE).get_json()["total"] == 0

    def test_delete_reviewed_rejected(self, client, submitter, reviewer):
        cr = _submit(client, submitter, _work_package(1))
        _review(client, reviewer, cr["id"], accepted=False)

        rv = client.delete(f"{BASE}/{cr['id']}", headers=_headers(submitter))

        assert rv.status_code == 400

    def test_delete_twice_rejected(self, client, submitter):
        cr = _submit(client, submitter, _work_package(1))
        client.delete(f"{BASE}/{cr['id']}", headers=_headers(submitter))

        rv = client.delete(f"{BASE}/{cr['id']}", headers=_headers(submitter))

        assert rv.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Slack notifications (enabled for these tests only)
# ═════════════════════════════════════════════════════════════════════════════


@pytest.fixture()
def slack_enabled(app, monkeypatch):
    monkeypatch.setitem(app.config, "SLACK_NOTIFICATIONS_ENABLED", True)
    monkeypatch.setitem(app.config, "SLACK_BOT_TOKEN", "xoxb-test")
    monkeypatch.setitem(app.config, "SLACK_EBOARD_CHANNEL", "C_EBOARD")


def _team():
    team = Team(name="Mechanical", slack_id="C_MECH")
    db.session.add(team)
    db.session.commit()
    return team


class TestSlackNotifications:

    def test_submit_stores_threads(self, client, submitter, slack_enabled):
        _project(_team())
        wp = _work_package(1)

        with patch.object(SlackGateway, "send_message",
                          side_effect=lambda channel, *a, **kw: {"channel_id": channel, "ts": "1.0"}) as send:
            cr = _submit(client, submitter, wp, solutions=[
                {"description": "Carbon", "timeline_impact": 1, "budget_impact": 250},
            ])

        assert [c.args[0] for c in send.call_args_list] == ["C_MECH", "C_EBOARD"]
        infos = MessageInfo.query.filter_by(change_request_id=cr["id"]).all()
        assert sorted(i.channel_id for i in infos) == ["C_EBOARD", "C_MECH"]

    def test_review_replies_in_threads(self, client, submitter, reviewer, slack_enabled):
        _project(_team())
        wp = _work_package(1)
        with patch.object(SlackGateway, "send_message",
                          side_effect=lambda channel, *a, **kw: {"channel_id": channel, "ts": "1.0"}):
            cr = _submit(client, submitter, wp)

        with patch.object(SlackGateway, "send_message") as send, \
                patch.object(SlackGateway, "reply_to_message_in_thread") as reply, \
                patch.object(SlackGateway, "react_to_message") as react:
            rv = _review(client, reviewer, cr["id"], accepted=False)

        assert rv.status_code == 200
        send.assert_called_once()
        assert send.call_args.args[0] == "U_SUBMITTER"
        reply.assert_called_once()
        react.assert_called_once_with("C_MECH", "1.0", "x")

    def test_eboard_failure_keeps_team_thread(self, client, submitter, slack_enabled):
        _project(_team())
        wp = _work_package(1)

        def _send(channel, *args, **kwargs):
            if channel == "C_EBOARD":
                raise ExternalNotificationError("Error sending slack message, reason: boom")
            return {"channel_id": channel, "ts": "1.0"}

        with patch.object(SlackGateway, "send_message", side_effect=_send):
            rv = client.post(BASE, headers=_headers(submitter), json={
                "wbs_element_id": wp.id, "type": "ISSUE",
                "proposed_solutions": [{"timeline_impact": 1, "budget_impact": 500}],
            })

        assert rv.status_code == 500
        cr = ChangeRequest.query.one()
        infos = MessageInfo.query.filter_by(change_request_id=cr.id).all()
        assert [(i.channel_id, i.timestamp) for i in infos] == [("C_MECH", "1.0")]

    def test_slack_failure_keeps_review(self, client, submitter, reviewer, slack_enabled):
        wp = _work_package(1)
        cr = _submit(client, submitter, wp, cr_type="ACTIVATION", solutions=[])

        with patch.object(SlackGateway, "send_message",
                          side_effect=ExternalNotificationError("Error sending slack message, reason: boom")):
            rv = _review(client, reviewer, cr["id"], accepted=True)

        assert rv.status_code == 500
        assert rv.get_json()["code"] == "ERR_NOTIFICATION"
        stored = db.session.get(ChangeRequest, cr["id"])
        assert stored.accepted is True
        assert stored.date_reviewed is not None
