"""
Integration tests for the admin console, transparency reports and the blog
"""
import uuid

import pytest
import pytest_asyncio

from conftest import verify_payload
from donation_portal.main import app


async def _donate(client, headers, program_id, amount, payment_id=None):
    """Create an order and, when a payment id is given, complete it"""
    response = await client.post(
        "/api/donations/create-order",
        json={"amount": amount, "programId": program_id, "visibilityChoice": "anonymous"},
        headers=headers,
    )
    order = response.json()
    if payment_id:
        await client.post(
            "/api/donations/verify", json=verify_payload(order["orderId"], payment_id), headers=headers
        )
        await app.state.dispatcher.drain()
    return order


@pytest_asyncio.fixture
async def donations(client, donor_headers, program, second_program):
    await _donate(client, donor_headers, program.id, 500, "pay_1")
    await _donate(client, donor_headers, second_program.id, 200, "pay_2")
    await _donate(client, donor_headers, program.id, 999)


# ============================================================================
# ADMIN CONSOLE TESTS
# ============================================================================

class TestAdminDashboard:
    """GET /api/admin/*"""

    @pytest.mark.asyncio
    async def test_dashboard_totals_completed_only(self, client, admin_headers, donations):
        response = await client.get("/api/admin/dashboard", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["donations"]["totalDonations"] == 2
        assert data["donations"]["totalAmount"] == 700
        assert len(data["donations"]["recentDonations"]) == 2
        assert data["programs"]["totalPrograms"] == 2
        assert data["programs"]["totalReceived"] == 700

    @pytest.mark.asyncio
    async def test_donations_filters(self, client, admin_headers, donations, program):
        everything = await client.get("/api/admin/donations", headers=admin_headers)
        pending = await client.get("/api/admin/donations", params={"status": "pending"}, headers=admin_headers)
        by_program = await client.get(
            "/api/admin/donations", params={"programId": program.id}, headers=admin_headers
        )

        assert everything.json()["total"] == 3
        assert [d["amount"] for d in pending.json()["donations"]] == [999]
        assert sorted(d["amount"] for d in by_program.json()["donations"]) == [500, 999]
        assert all(d["donorEmail"] == "asha@example.com" for d in everything.json()["donations"])

    @pytest.mark.asyncio
    async def test_donors_with_totals(self, client, admin_headers, donations):
        response = await client.get("/api/admin/donors", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        donor = data["donors"][0]
        assert donor["email"] == "asha@example.com"
        assert donor["donationCount"] == 2
        assert donor["totalDonated"] == 700


# ============================================================================
# TRANSPARENCY REPORT TESTS
# ============================================================================

class TestReports:
    """/api/reports and /api/transparency"""

    @pytest.mark.asyncio
    async def test_publish_and_fetch_latest(self, client, admin_headers, program):
        for received, utilized in ((1000, 200), (1500, 900)):
            response = await client.post(
                "/api/reports",
                json={
                    "programId": program.id,
                    "fundsReceived": received,
                    "fundsUtilized": utilized,
                    "reportFileURL": "https://example.org/report.pdf",
                },
                headers=admin_headers,
            )
            assert response.status_code == 201

        latest = await client.get(f"/api/reports/program/{program.id}")
        listing = await client.get("/api/reports")

        assert latest.json()["fundsReceived"] == 1500
        assert latest.json()["utilizationRate"] == 60.0
        assert latest.json()["reportFileURL"] == "https://example.org/report.pdf"
        assert listing.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_utilized_over_received_rejected(self, client, admin_headers, program):
        response = await client.post(
            "/api/reports",
            json={"programId": program.id, "fundsReceived": 100, "fundsUtilized": 101},
            headers=admin_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_program(self, client, admin_headers):
        response = await client.post(
            "/api/reports",
            json={"programId": str(uuid.uuid4()), "fundsReceived": 100, "fundsUtilized": 10},
            headers=admin_headers,
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_no_report_for_program(self, client, program):
        response = await client.get(f"/api/reports/program/{program.id}")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Report not found"

    @pytest.mark.asyncio
    async def test_transparency_lists_active_programs(self, client, admin_headers, program, second_program):
        await client.delete(f"/api/programs/{second_program.id}", headers=admin_headers)

        response = await client.get("/api/transparency/programs")

        assert response.status_code == 200
        assert [p["programName"] for p in response.json()["programs"]] == ["Clean Water"]

    @pytest.mark.asyncio
    async def test_transparency_reports_public(self, client):
        response = await client.get("/api/transparency/reports")

        assert response.status_code == 200
        assert response.json() == {"reports": [], "total": 0}


# ============================================================================
# BLOG TESTS
# ============================================================================

class TestBlog:
    """/api/blog"""

    async def _publish(self, client, headers, **overrides):
        body = {"title": "Wells delivered", "content": "Twelve villages now have clean water.", "category": "blog"}
        body.update(overrides)
        response = await client.post("/api/blog", json=body, headers=headers)
        assert response.status_code == 201
        return response.json()

    @pytest.mark.asyncio
    async def test_category_filter(self, client, admin_headers):
        await self._publish(client, admin_headers)
        await self._publish(client, admin_headers, title="Press release", category="press")

        press = await client.get("/api/blog", params={"category": "press"})

        assert [p["title"] for p in press.json()["posts"]] == ["Press release"]

    @pytest.mark.asyncio
    async def test_unpublished_hidden(self, client, admin_headers):
        draft = await self._publish(client, admin_headers, published=False)

        listing = await client.get("/api/blog")
        single = await client.get(f"/api/blog/{draft['id']}")

        assert listing.json()["total"] == 0
        assert single.status_code == 404

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client, admin_headers):
        post = await self._publish(client, admin_headers)

        updated = await client.put(f"/api/blog/{post['id']}", json={"title": "Wells delivered!"}, headers=admin_headers)
        deleted = await client.delete(f"/api/blog/{post['id']}", headers=admin_headers)
        gone = await client.get(f"/api/blog/{post['id']}")

        assert updated.json()["title"] == "Wells delivered!"
        assert deleted.json() == {"message": "Blog post deleted"}
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_donor_cannot_publish(self, client, donor_headers):
        response = await client.post(
            "/api/blog",
            json={"title": "Hi", "content": "Spam"},
            headers=donor_headers,
        )

        assert response.status_code == 403
