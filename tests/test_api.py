"""
HTTP surface tests through httpx's ASGI transport.
Run from the project root: python -m pytest tests/test_api.py -v
"""
import unittest
from decimal import Decimal

import httpx

from api.deps import get_notifier, get_property_catalog, get_user_directory
from database import get_db
from main import app
from tests.support import SubmissionFixture

SUBMIT_BODY = {
    "userId": 1,
    "propertyId": 10,
    "downPayment": "150000000",
    "loanTermYears": 15,
    "purpose": "PRIMARY_RESIDENCE",
}


class ApiTestCase(SubmissionFixture):
    async def asyncSetUp(self):
        await super().asyncSetUp()

        async def _get_db():
            async with self.sessionmaker() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_user_directory] = lambda: self.users
        app.dependency_overrides[get_property_catalog] = lambda: self.properties
        app.dependency_overrides[get_notifier] = lambda: self.notifier
        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        await super().asyncTearDown()


class TestApplicationsApi(ApiTestCase):
    async def test_submit_and_read_back(self):
        response = await self.client.post("/api/applications", json=SUBMIT_BODY)
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertRegex(body["applicationNumber"], r"^KPR-\d{4}-000001$")
        self.assertEqual(body["status"], "SUBMITTED")
        self.assertEqual(Decimal(body["monthlyInstallment"]), Decimal("4171555.62"))
        self.assertEqual(Decimal(body["interestRate"]), Decimal("7.5"))
        app_id = body["applicationId"]

        detail = (await self.client.get(f"/api/applications/{app_id}")).json()
        self.assertEqual(detail["loanAmount"], "450000000.00")
        self.assertEqual(detail["ratePlanId"], "kpr-standard")

        workflows = (await self.client.get(f"/api/applications/{app_id}/workflows")).json()
        self.assertEqual([w["stage"] for w in workflows], ["DOCUMENT_VERIFICATION"])

        schedule = (await self.client.get(f"/api/applications/{app_id}/schedule")).json()
        self.assertEqual(len(schedule["rows"]), 180)

        listed = (await self.client.get("/api/applications", params={"userId": 1})).json()
        self.assertEqual([a["id"] for a in listed], [app_id])

        audit = (await self.client.get(f"/api/applications/{app_id}/audit")).json()
        self.assertEqual([e["action"] for e in audit], ["submit"])

    async def test_domain_errors_carry_status_and_code(self):
        response = await self.client.post("/api/applications", json={**SUBMIT_BODY, "downPayment": "100000000"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["code"], "down_payment_too_low")

        response = await self.client.post("/api/applications", json={**SUBMIT_BODY, "userId": 404})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "user_not_found")

        await self.client.post("/api/applications", json=SUBMIT_BODY)
        response = await self.client.post("/api/applications", json=SUBMIT_BODY)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "duplicate_pending_application")

        response = await self.client.get("/api/applications/app-missing")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "application_not_found")

    async def test_request_validation(self):
        response = await self.client.post("/api/applications", json={**SUBMIT_BODY, "loanTermYears": 0})
        self.assertEqual(response.status_code, 422)

    async def test_cancel(self):
        app_id = (await self.client.post("/api/applications", json=SUBMIT_BODY)).json()["applicationId"]
        response = await self.client.post(f"/api/applications/{app_id}/cancel", json={"actorId": 1, "reason": "no"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["status"], "CANCELLED")
        response = await self.client.post(f"/api/applications/{app_id}/cancel", json={})
        self.assertEqual(response.status_code, 409)


class TestWorkflowsApi(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        submitted = (await self.client.post("/api/applications", json=SUBMIT_BODY)).json()
        self.application_id = submitted["applicationId"]
        rows = (await self.client.get(f"/api/applications/{self.application_id}/workflows")).json()
        self.workflow_id = rows[0]["id"]

    async def test_start_approve_and_advance(self):
        response = await self.client.post(f"/api/workflows/{self.workflow_id}/start", json={"actorId": 7})
        self.assertEqual(response.json()["status"], "IN_PROGRESS")
        response = await self.client.post(
            f"/api/workflows/{self.workflow_id}/approve", json={"actorId": 7, "notes": "complete"}
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["comments"], "complete")

        rows = (await self.client.get(f"/api/applications/{self.application_id}/workflows")).json()
        self.assertEqual([r["stage"] for r in rows], ["DOCUMENT_VERIFICATION", "PROPERTY_APPRAISAL"])
        app = (await self.client.get(f"/api/applications/{self.application_id}")).json()
        self.assertEqual(app["status"], "PROPERTY_APPRAISAL")

        response = await self.client.post(f"/api/workflows/{self.workflow_id}/approve", json={"actorId": 7})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "already_completed")

    async def test_reject_requires_reason(self):
        response = await self.client.post(f"/api/workflows/{self.workflow_id}/reject", json={"actorId": 7})
        self.assertEqual(response.status_code, 422)
        response = await self.client.post(
            f"/api/workflows/{self.workflow_id}/reject", json={"actorId": 7, "reason": "income unverifiable"}
        )
        self.assertEqual(response.json()["status"], "REJECTED")

    async def test_escalate_assign_and_queries(self):
        await self.client.post(f"/api/workflows/{self.workflow_id}/assign", json={"actorId": 8, "userId": 7})
        mine = (await self.client.get("/api/workflows", params={"assignee": 7})).json()
        self.assertEqual([w["id"] for w in mine], [self.workflow_id])

        response = await self.client.post(
            f"/api/workflows/{self.workflow_id}/escalate", json={"actorId": 7, "toUserId": 8}
        )
        self.assertEqual(response.json()["escalatedTo"], 8)
        escalated = (await self.client.get("/api/workflows", params={"status": "ESCALATED"})).json()
        self.assertEqual(len(escalated), 1)

        counts = (await self.client.get("/api/workflows/counts")).json()
        self.assertEqual(counts["byStatus"], {"ESCALATED": 1})
        self.assertEqual((await self.client.get("/api/workflows/overdue")).json(), [])
        self.assertEqual((await self.client.get("/api/workflows/needing-escalation")).json(), [])

    async def test_create_and_delete(self):
        response = await self.client.post(
            "/api/workflows", json={"applicationId": self.application_id, "stage": "CREDIT_ANALYSIS"}
        )
        self.assertEqual(response.status_code, 201, response.text)
        created = response.json()
        self.assertEqual(created["position"], 2)

        response = await self.client.post("/api/workflows/bulk-delete", json={"ids": [created["id"], "wf-missing"]})
        self.assertEqual(response.status_code, 404)
        response = await self.client.delete(f"/api/workflows/{created['id']}")
        self.assertEqual(response.status_code, 204)
        response = await self.client.get(f"/api/workflows/{created['id']}")
        self.assertEqual(response.json()["code"], "workflow_not_found")


class TestCatalogApi(ApiTestCase):
    async def test_rates_and_levels(self):
        rates = (await self.client.get("/api/rates")).json()
        self.assertEqual([r["id"] for r in rates], ["kpr-standard"])
        self.assertEqual(Decimal(rates[0]["effectiveRate"]), Decimal("7.5"))
        self.assertEqual((await self.client.get("/api/rates/promotional")).json(), [])

        levels = (await self.client.get("/api/approval-levels")).json()
        self.assertEqual(levels[0]["canSkip"], True)

    async def test_simulate(self):
        response = await self.client.post(
            "/api/rates/simulate", json={"principal": "100000000", "annualRate": "8", "termYears": 20}
        )
        self.assertEqual(Decimal(response.json()["monthlyInstallment"]), Decimal("836440.07"))
        self.assertIsNone(response.json()["schedule"])

        response = await self.client.post(
            "/api/rates/simulate",
            json={"principal": "1000000", "annualRate": "12", "termYears": 1, "includeSchedule": True},
        )
        self.assertEqual(len(response.json()["schedule"]["rows"]), 12)

    async def test_match(self):
        response = await self.client.post(
            "/api/rates/match",
            json={"propertyType": "RUMAH", "loanAmount": "450000000", "termYears": 15, "monthlyIncome": "1000000"},
        )
        report = response.json()[0]
        self.assertFalse(report["eligible"])
        self.assertEqual([c["name"] for c in report["criteriaResults"] if not c["met"]], ["Minimum Income"])

    async def test_health(self):
        self.assertEqual((await self.client.get("/health")).json(), {"status": "ok"})


if __name__ == "__main__":
    unittest.main()
