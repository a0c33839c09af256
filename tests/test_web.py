"""Tests for the Flask web interface."""

LOAN_FORM = {
    "category": "auto",
    "amount": "10000000",
    "term": "12",
    "rate": "12",
    "start_date": "01/01/2024",
    "repayment_frequency": "monthly",
    "amortization_method": "equal_total",
    "title": "Dealer offer",
}


def post_loan(client, action="run", **overrides):
    form = dict(LOAN_FORM, action=action)
    form.update(overrides)
    return client.post("/", data=form)


class TestCalculator:
    def test_empty_form(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert b"View Amortization Table" in response.data
        assert b"Installment Schedule" not in response.data

    def test_results(self, client):
        response = post_loan(client)
        assert response.status_code == 200
        body = response.get_data(as_text=True)
        assert "888,487.89" in body
        assert "10,661,854.68" in body
        assert "01/01/2025" in body
        assert body.count("<tr>") == 13

    def test_missing_field(self, client):
        body = post_loan(client, start_date="").get_data(as_text=True)
        assert "Please fill in all fields." in body
        assert "Installment Schedule" not in body

    def test_invalid_amount(self, client):
        body = post_loan(client, amount="lots").get_data(as_text=True)
        assert "Invalid amount: lots" in body

    def test_oversized_term(self, client):
        body = post_loan(client, term="999999999").get_data(as_text=True)
        assert "Term must be at most 600 months" in body
        assert "Installment Schedule" not in body

    def test_unparseable_start_date(self, client):
        body = post_loan(client, start_date="31/02/2024").get_data(as_text=True)
        assert "Installment Schedule" in body
        assert "DD/MM/YYYY" in body
        assert "01/01/2025" not in body

    def test_weekly_column_label(self, client):
        body = post_loan(client, repayment_frequency="weekly").get_data(as_text=True)
        assert "<th>Week</th>" in body
        assert "Weekly Payment" in body


class TestHistoryPages:
    def test_save_and_delete(self, client):
        body = post_loan(client, action="save_history").get_data(as_text=True)
        assert "Saved to history." in body

        page = client.get("/history").get_data(as_text=True)
        assert "Dealer offer (Auto)" in page
        assert "Total Payment: 10661854.68" in page

        response = client.post("/history/remove", data={"record_id": "1"})
        assert response.status_code == 302
        assert "No history found." in client.get("/history").get_data(as_text=True)

    def test_clear(self, client):
        post_loan(client, action="save_history")
        post_loan(client, action="save_history")
        client.post("/history/clear")
        assert "No history found." in client.get("/history").get_data(as_text=True)

    def test_sessions_do_not_share_history(self, app, client):
        post_loan(client, action="save_history")
        other = app.test_client()
        assert "No history found." in other.get("/history").get_data(as_text=True)


class TestComparePages:
    def test_cap_and_ranking(self, client):
        for rate, title in (("12", "Mid"), ("10", "Cheap"), ("14", "Dear")):
            body = post_loan(client, action="add_to_compare", rate=rate, title=title).get_data(as_text=True)
            assert "added to the compare list" in body

        body = post_loan(client, action="add_to_compare", title="One too many").get_data(as_text=True)
        assert "Limit reached" in body

        page = client.get("/compare").get_data(as_text=True)
        assert "Compare List (3/3)" in page
        assert "One too many" not in page
        cheap = page.index("Cheap")
        assert page.index("Best value among compared loans") > cheap
        assert page.index("Least cost-effective option") > page.index("Dear")

    def test_remove_and_clear(self, app, client):
        post_loan(client, action="add_to_compare")
        post_loan(client, action="add_to_compare")
        _, compare_store = app.extensions["pathpay_stores"]
        with client.session_transaction() as session:
            owner = session["user_token"]
        first_id = compare_store.list(owner)[0]["id"]

        client.post("/compare/remove", data={"record_id": str(first_id)})
        assert compare_store.count(owner) == 1

        client.post("/compare/clear")
        assert "No compare data found." in client.get("/compare").get_data(as_text=True)
