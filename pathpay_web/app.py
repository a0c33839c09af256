import logging
from typing import Optional
from uuid import uuid4

from flask import Flask, redirect, render_template, request, session, url_for

from pathpay.config import Settings, configure_logging
from pathpay.data_models import AmortizationMethod, LoanCategory, RepaymentFrequency
from pathpay.engine import compute_amortization
from pathpay.exceptions import CompareListFullError, PathPayError, StorageError
from pathpay.main import build_loan_input
from pathpay.ranking import rank_records
from pathpay.storage import COMPARE_LIMIT, build_record, open_stores
from pathpay.utils import format_date

logger = logging.getLogger(__name__)

FIELD_HELP = {
    "amount": "Please enter the loan amount you want to borrow.",
    "term": "The length of time you have to repay the loan, in months.",
    "rate": "The annual interest rate (p.a.), in percent.",
    "repayment_frequency": "Monthly periods are usual, but the bank may allow weekly, biweekly or yearly installments.",
    "amortization_method": "Equal total payments keep every installment the same; equal principal payments start higher and decline.",
    "start_date": "The date of the first installment, as DD/MM/YYYY.",
}


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _form_values(form) -> dict:
    return {
        "category": form.get("category", LoanCategory.PERSONAL.value),
        "amount": form.get("amount", "").strip(),
        "term": form.get("term", "").strip(),
        "rate": form.get("rate", "").strip(),
        "start_date": form.get("start_date", "").strip(),
        "repayment_frequency": form.get("repayment_frequency", RepaymentFrequency.MONTHLY.value),
        "amortization_method": form.get("amortization_method", AmortizationMethod.EQUAL_TOTAL.value),
        "title": form.get("title", "").strip(),
    }


def _run_analysis(values: dict):
    loan = build_loan_input(
        values["amount"],
        values["term"],
        values["rate"],
        values["start_date"],
        values["repayment_frequency"],
        values["amortization_method"],
    )
    if loan is None:
        return None
    return compute_amortization(loan)


def create_app(settings: Optional[Settings] = None) -> Flask:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    history_store, compare_store = open_stores(settings.database_url)
    app.extensions["pathpay_stores"] = (history_store, compare_store)

    app.jinja_env.filters["money"] = lambda value: f"{value:,.2f}"
    app.jinja_env.filters["ddmmyyyy"] = format_date

    @app.route("/", methods=["GET", "POST"])
    def index():
        values = _form_values(request.form if request.method == "POST" else request.args)
        result = None
        error = None
        notice = None
        user_token = _ensure_user_token()

        if request.method == "POST":
            action = request.form.get("action", "run")
            try:
                result = _run_analysis(values)
                if result is None:
                    error = "Please fill in all fields."
                elif action == "save_history":
                    history_store.add(user_token, build_record(result, values["category"], values["title"]))
                    notice = "Saved to history."
                elif action == "add_to_compare":
                    compare_store.add(user_token, build_record(result, values["category"], values["title"]))
                    notice = "Your item was added to the compare list."
            except CompareListFullError as exc:
                error = f"Limit reached: {exc.message}."
            except PathPayError as exc:
                error = exc.message

        return render_template(
            "index.html",
            values=values,
            result=result,
            error=error,
            notice=notice,
            categories=list(LoanCategory),
            frequencies=list(RepaymentFrequency),
            methods=list(AmortizationMethod),
            field_help=FIELD_HELP,
        )

    @app.get("/history")
    def history():
        user_token = _ensure_user_token()
        return render_template("history.html", records=history_store.list(user_token))

    @app.post("/history/remove")
    def remove_history():
        record_id = request.form.get("record_id", type=int)
        user_token = session.get("user_token")
        if record_id is not None:
            history_store.remove(user_token, record_id)
        return redirect(url_for("history"))

    @app.post("/history/clear")
    def clear_history():
        history_store.clear(session.get("user_token"))
        return redirect(url_for("history"))

    @app.get("/compare")
    def compare():
        user_token = _ensure_user_token()
        ranked = rank_records(compare_store.list(user_token))
        return render_template("compare.html", records=ranked, limit=COMPARE_LIMIT)

    @app.post("/compare/remove")
    def remove_comparison():
        record_id = request.form.get("record_id", type=int)
        user_token = session.get("user_token")
        if record_id is not None:
            compare_store.remove(user_token, record_id)
        return redirect(url_for("compare"))

    @app.post("/compare/clear")
    def clear_comparisons():
        compare_store.clear(session.get("user_token"))
        return redirect(url_for("compare"))

    @app.errorhandler(StorageError)
    def storage_unavailable(exc):
        logger.warning("Storage error while serving %s: %s", request.path, exc)
        return render_template("error.html", message=exc.message), 503

    return app


if __name__ == "__main__":
    print("Starting PathPay web app...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
