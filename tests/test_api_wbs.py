"""
tests/test_api_wbs.py — WBS element endpoints and CR-tied work package edits.

Marker: integration (full HTTP round-trip through Flask test client).
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from finishline.models import db
from finishline.models.change_request import Change, ChangeRequest
from finishline.models.wbs import WbsElement, WorkPackage
from finishline.services.change_request_service import edit_work_package

pytestmark = pytest.mark.integration

BASE = "/api/v1/wbs-elements"


def _headers(user):
    return {"X-User-Id": str(user.id)}


def _work_package(number=1, start=date(2023, 1, 2), duration=3) -> WbsElement:
    element = WbsElement(car_number=1, project_number=5, work_package_number=number,
                         name=f"Package {number}")
    element.work_package = WorkPackage(start_date=start, duration=duration)
    db.session.add(element)
    db.session.commit()
    return element


def _accepted_cr(element, user, reviewed_at=None) -> ChangeRequest:
    cr = ChangeRequest(
        wbs_element_id=element.id, submitter_id=user.id, reviewer_id=user.id,
        type="DEFINITION_CHANGE", accepted=True,
        date_reviewed=reviewed_at or datetime.now(timezone.utc),
    )
    db.session.add(cr)
    db.session.commit()
    return cr


def _edit(client, user, element, **body):
    return client.put(f"{BASE}/{element.id}/work-package", headers=_headers(user), json=body)


class TestGetWbsElement:

    def test_get_includes_work_package_and_blocking(self, client):
        a, b = _work_package(1), _work_package(2)
        a.blocking.append(b)
        db.session.commit()

        body = client.get(f"{BASE}/{a.id}").get_json()

        assert body["wbs_num"] == "1.5.1"
        assert body["blocking_ids"] == [b.id]
        assert body["work_package"]["start_date"] == "2023-01-02"

    def test_missing_element(self, client):
        rv = client.get(f"{BASE}/404")
        assert rv.status_code == 404
        assert rv.get_json()["code"] == "ERR_NOT_FOUND"


class TestEditWorkPackage:

    def test_edit_records_one_change_per_field(self, client, reviewer):
        wp = _work_package(duration=3)
        cr = _accepted_cr(wp, reviewer)

        rv = _edit(client, reviewer, wp, cr_id=cr.id, name="Package 1",
                   start_date="2023-01-09", duration=4)

        assert rv.status_code == 200, rv.get_json()
        details = [c["detail"] for c in rv.get_json()["changes"]]
        assert details == [
            '"Start Date" changed from 1/2/2023 to 1/9/2023',
            '"Duration" changed from 3 weeks to 4 weeks',
        ]
        assert rv.get_json()["wbs_element"]["work_package"]["duration"] == 4

        history = client.get(f"{BASE}/{wp.id}/changes").get_json()
        assert history["total"] == 2

    def test_edit_marks_cr_implemented(self, client, reviewer):
        wp = _work_package()
        cr = _accepted_cr(wp, reviewer)

        _edit(client, reviewer, wp, cr_id=cr.id, name="Renamed")

        body = client.get(f"/api/v1/change-requests/{cr.id}").get_json()
        assert body["status"] == "Implemented"
        assert body["date_implemented"] is not None

    def test_cr_id_required(self, client, reviewer):
        rv = _edit(client, reviewer, _work_package(), name="x")
        assert rv.status_code == 400

    def test_unreviewed_cr_rejected(self, client, reviewer):
        wp = _work_package()
        cr = ChangeRequest(wbs_element_id=wp.id, submitter_id=reviewer.id, type="OTHER")
        db.session.add(cr)
        db.session.commit()

        rv = _edit(client, reviewer, wp, cr_id=cr.id, name="x")

        assert rv.status_code == 400
        assert "unreviewed" in rv.get_json()["error"]

    def test_stale_cr_rejected(self, client, reviewer):
        wp = _work_package()
        long_ago = datetime.now(timezone.utc) - timedelta(days=10)
        cr = _accepted_cr(wp, reviewer, reviewed_at=long_ago)
        db.session.add(Change(change_request_id=cr.id, wbs_element_id=wp.id,
                              implementer_id=reviewer.id, detail='"Name" changed from A to B',
                              date_implemented=long_ago))
        db.session.commit()

        rv = _edit(client, reviewer, wp, cr_id=cr.id, name="x")

        assert rv.status_code == 400
        assert "outdated" in rv.get_json()["error"]

    def test_bad_duration(self, client, reviewer):
        wp = _work_package()
        cr = _accepted_cr(wp, reviewer)

        rv = _edit(client, reviewer, wp, cr_id=cr.id, duration=0)

        assert rv.status_code == 422

    def test_null_name_rejected_and_session_usable(self, client, reviewer):
        wp = _work_package()
        cr = _accepted_cr(wp, reviewer)

        rv = _edit(client, reviewer, wp, cr_id=cr.id, name=None)

        assert rv.status_code == 422
        assert rv.get_json()["details"] == {"name": None}
        assert client.get(f"{BASE}/{wp.id}").get_json()["name"] == "Package 1"
        assert Change.query.count() == 0

    def test_blank_name_rejected(self, client, reviewer):
        wp = _work_package()
        cr = _accepted_cr(wp, reviewer)
        assert _edit(client, reviewer, wp, cr_id=cr.id, name="   ").status_code == 422

    def test_non_string_start_date_rejected(self, client, reviewer):
        wp = _work_package()
        cr = _accepted_cr(wp, reviewer)

        rv = _edit(client, reviewer, wp, cr_id=cr.id, start_date=20230101)

        assert rv.status_code == 422
        assert db.session.get(WbsElement, wp.id).work_package.start_date == date(2023, 1, 2)

    def test_boolean_duration_rejected(self, client, reviewer):
        wp = _work_package()
        cr = _accepted_cr(wp, reviewer)
        assert _edit(client, reviewer, wp, cr_id=cr.id, duration=True).status_code == 422

    def test_commit_failure_rolls_back(self, reviewer):
        wp = _work_package()
        cr = _accepted_cr(wp, reviewer)

        with patch("finishline.services.change_request_service.db.session.commit",
                   side_effect=RuntimeError("database is locked")):
            with pytest.raises(RuntimeError):
                edit_work_package(reviewer, wp.id, cr.id, {"name": "Renamed"})

        assert db.session.get(WbsElement, wp.id).name == "Package 1"
        assert Change.query.count() == 0


class TestDeleteWbsElement:

    def test_soft_delete(self, client, reviewer):
        wp = _work_package()

        rv = client.delete(f"{BASE}/{wp.id}", headers=_headers(reviewer))

        assert rv.status_code == 200
        assert client.get(f"{BASE}/{wp.id}").get_json()["deleted_at"] is not None

    def test_delete_twice(self, client, reviewer):
        wp = _work_package()
        client.delete(f"{BASE}/{wp.id}", headers=_headers(reviewer))

        rv = client.delete(f"{BASE}/{wp.id}", headers=_headers(reviewer))

        assert rv.status_code == 400


class TestHealth:

    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_live_reports_slack_disabled(self, client):
        body = client.get("/api/v1/health/live").get_json()
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["slack"]["status"] == "disabled"
