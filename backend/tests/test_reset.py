# Overview: Pytest coverage for the guarded bulk wipe (API and CLI).

from slipdesk.models import IncomeRecord, Item, Slip
from slipdesk.cli import wipe_data


def _seed(client):
    client.post("/api/slips", json={
        "products": [{"productType": "Cover", "coverType": "Aster Cover", "quantity": 1, "basePrice": 100}],
        "subtotal": 100,
        "totalAmount": 100,
    })


class TestResetRoute:
    def test_wrong_secret_is_403(self, client, db_session, aster_cover):
        resp = client.post("/api/reset", json={"secret": "guess", "confirm": "RESET_ALL"})
        assert resp.status_code == 403
        assert db_session.query(Item).count() == 1

    def test_missing_confirmation_is_403(self, client, db_session, aster_cover):
        resp = client.post("/api/reset", json={"secret": "test-reset-secret"})
        assert resp.status_code == 403
        assert db_session.query(Item).count() == 1

    def test_wipes_everything(self, client, db_session, aster_cover):
        _seed(client)
        resp = client.post("/api/reset", json={"secret": "test-reset-secret", "confirm": "RESET_ALL"})
        assert resp.status_code == 200
        assert resp.get_json()["deleted"] == {"slips": 1, "incomeRecords": 1, "items": 1}
        assert db_session.query(Slip).count() == 0
        assert db_session.query(IncomeRecord).count() == 0
        assert db_session.query(Item).count() == 0


class TestWipeCommand:
    def test_cli_wipe(self, app, client, db_session, aster_cover):
        _seed(client)
        runner = app.test_cli_runner()
        result = runner.invoke(wipe_data, ["--yes"])
        assert result.exit_code == 0
        assert "Deleted 1 slips" in result.output
        assert db_session.query(Item).count() == 0
