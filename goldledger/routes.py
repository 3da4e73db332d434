import io
from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import (
    Blueprint, Response, render_template, redirect, url_for, flash,
    request, abort, jsonify, send_file, current_app
)
from flask_login import login_user, logout_user, login_required, current_user
from werkzeug.security import generate_password_hash, check_password_hash

from goldledger import db
from goldledger.exceptions import ExportError, WriteError
from goldledger.exports import (
    invoice_filename, report_filename, sale_to_pdf, sales_to_csv, sales_to_tsv,
    sales_to_xlsx
)
from goldledger.forms import (
    RegistrationForm, LoginForm, SaleForm, SalesHistoryFilterForm, ExportForm
)
from goldledger.ledger import (
    MONTHS, CurrentSale, available_years, build_sale_fields, compute_totals,
    display_breakdown, display_price, format_inr, parse_amount, period_range,
    receipt_reference, receipt_text, sales_between, sales_in_month, search_sales,
    total_of, validate_sale_input, whatsapp_link
)
from goldledger.models import User


# -----------------------
# Blueprints
# -----------------------
main_bp = Blueprint("main", __name__)
sales_bp = Blueprint("sales", __name__, url_prefix="/sales")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _store():
    return current_app.extensions["sale_store"]


def _own_sale_or_404(sale_id):
    sale = _store().get(current_user.id, sale_id)
    if sale is None:
        abort(404)
    return sale


def shop_timezone():
    return ZoneInfo(current_app.config["TIMEZONE"])


def _parse_date(raw):
    try:
        return date.fromisoformat(raw) if raw else None
    except ValueError:
        return None


# -----------------------
# Accounts
# -----------------------
@main_bp.route("/")
def index():
    return redirect(url_for("sales.new_sale"))


@main_bp.route("/register", methods=["GET", "POST"])
def register():
    form = RegistrationForm()
    if form.validate_on_submit():
        username = form.username.data.strip()
        if User.query.filter_by(username=username).first():
            flash("That username is already taken", "danger")
            return render_template("register.html", form=form)

        user = User(
            username=username,
            display_name=(form.display_name.data or "").strip() or None,
            password_hash=generate_password_hash(form.password.data)
        )
        db.session.add(user)
        db.session.commit()
        current_app.logger.info("Registered user %s", username)
        flash("Account created. Please sign in.", "success")
        return redirect(url_for("main.login"))

    return render_template("register.html", form=form)


@main_bp.route("/login", methods=["GET", "POST"])
def login():
    form = LoginForm()

    if form.validate_on_submit():
        user = User.query.filter_by(username=form.username.data.strip()).first()

        if user and check_password_hash(user.password_hash, form.password.data):
            login_user(user, remember=form.remember.data)
            flash("Signed in.", "success")
            return redirect(url_for("sales.new_sale"))

        current_app.logger.warning("Failed sign-in for %s", form.username.data)
        flash("Wrong username or password", "danger")

    return render_template("login.html", form=form)


@main_bp.route("/logout")
@login_required
def logout():
    logout_user()
    flash("Signed out.", "info")
    return redirect(url_for("main.login"))


# -----------------------
# New sale
# -----------------------
@sales_bp.route("/new", methods=["GET", "POST"])
@login_required
def new_sale():
    form = SaleForm()

    if form.validate_on_submit():
        data = form.sale_input()
        reason = validate_sale_input(data)
        if reason:
            flash(reason, "danger")
        else:
            fields = build_sale_fields(data)
            try:
                _store().create(current_user.id, fields)
            except WriteError as e:
                flash(str(e), "danger")
            else:
                flash(f"Sale saved for {fields['customer_name']}.", "success")
                return redirect(url_for("sales.history"))
    elif request.method == "POST":
        for errors in form.errors.values():
            for error in errors:
                flash(error, "danger")

    totals = compute_totals(form.item_base_price.data, form.gst_amount.data, form.discount_amount.data)
    return render_template(
        "sales/new.html",
        form=form,
        base=parse_amount(form.item_base_price.data),
        gst=parse_amount(form.gst_amount.data),
        discount=parse_amount(form.discount_amount.data),
        totals=totals
    )


@sales_bp.route("/summary", methods=["GET"])
@login_required
def summary():
    base = parse_amount(request.args.get("item_base_price"))
    gst = parse_amount(request.args.get("gst_amount"))
    discount = parse_amount(request.args.get("discount_amount"))
    totals = compute_totals(base, gst, discount)

    return jsonify({
        "base": format_inr(base),
        "gst": format_inr(gst),
        "discount": format_inr(discount),
        "total_price_before_discount": format_inr(totals.total_price_before_discount),
        "final_price": format_inr(totals.final_price),
        "negative": totals.final_price < 0
    })


# -----------------------
# History
# -----------------------
@sales_bp.route("/history", methods=["GET"])
@login_required
def history():
    q = (request.args.get("q") or "").strip()
    period = (request.args.get("period") or "").strip()
    start_date_raw = (request.args.get("start_date") or "").strip()
    end_date_raw = (request.args.get("end_date") or "").strip()

    filter_form = SalesHistoryFilterForm(request.args)

    tz = shop_timezone()
    today = datetime.now(tz).date()
    start_date, end_date = period_range(
        period, today, _parse_date(start_date_raw), _parse_date(end_date_raw)
    )

    snapshot = _store().snapshot(current_user.id)
    sales = sales_between(search_sales(snapshot, q), start_date, end_date, tz)

    export_form = ExportForm(formdata=None)
    export_form.year.choices = [(y, str(y)) for y in available_years(snapshot, today.year, tz)]
    export_form.month.data = today.month
    export_form.year.data = today.year

    return render_template(
        "sales/history.html",
        sales=sales,
        total_sum=total_of(sales),
        record_count=len(snapshot),
        q=q,
        period=period,
        filter_form=filter_form,
        export_form=export_form,
        display_price=display_price
    )


@sales_bp.route("/export", methods=["GET"])
@login_required
def export():
    tz = shop_timezone()
    today = datetime.now(tz).date()
    fmt = (request.args.get("format") or "xlsx").strip().lower()
    month = request.args.get("month", default=today.month, type=int)
    year = request.args.get("year", default=today.year, type=int)

    if fmt not in ("xlsx", "csv", "tsv") or not 1 <= month <= 12:
        abort(400)

    monthly = sales_in_month(_store().snapshot(current_user.id), year, month, tz)
    if not monthly:
        flash(f"No sales found for {MONTHS[month - 1]}, {year}.", "warning")
        return redirect(url_for("sales.history"))

    current_app.logger.info(
        "Export %s for %s %s: %d records", fmt, MONTHS[month - 1], year, len(monthly)
    )

    if fmt == "tsv":
        return Response(sales_to_tsv(monthly, tz), mimetype="text/plain; charset=utf-8")

    try:
        if fmt == "xlsx":
            payload = sales_to_xlsx(monthly, tz)
            mimetype = XLSX_MIMETYPE
        else:
            payload = sales_to_csv(monthly, tz)
            mimetype = "text/csv; charset=utf-8"
    except ExportError as e:
        flash(str(e), "danger")
        return redirect(url_for("sales.history"))

    return send_file(
        io.BytesIO(payload),
        mimetype=mimetype,
        as_attachment=True,
        download_name=report_filename(year, month, fmt)
    )


# -----------------------
# Single sale
# -----------------------
@sales_bp.route("/<sale_id>", methods=["GET"])
@login_required
def receipt(sale_id):
    sale = _own_sale_or_404(sale_id)
    return render_template(
        "sales/receipt.html",
        sale=sale,
        is_current=isinstance(sale, CurrentSale),
        breakdown=display_breakdown(sale),
        final_price=display_price(sale),
        reference=receipt_reference(sale),
        share_text=receipt_text(sale),
        can_share=whatsapp_link(sale) is not None
    )


@sales_bp.route("/<sale_id>/delete", methods=["POST"])
@login_required
def delete_sale(sale_id):
    try:
        _store().delete(current_user.id, sale_id)
    except WriteError:
        flash("Failed to delete sale.", "danger")
    else:
        flash("Sale deleted successfully.", "info")
    return redirect(url_for("sales.history"))


@sales_bp.route("/<sale_id>/invoice.pdf", methods=["GET"])
@login_required
def invoice(sale_id):
    sale = _own_sale_or_404(sale_id)
    try:
        pdf = sale_to_pdf(
            sale,
            current_app.config["SHOP_NAME"],
            current_app.config["WKHTMLTOPDF_PATH"]
        )
    except ExportError as e:
        flash(str(e), "danger")
        return redirect(url_for("sales.receipt", sale_id=sale_id))

    return send_file(
        io.BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=invoice_filename(sale)
    )


@sales_bp.route("/<sale_id>/share", methods=["GET"])
@login_required
def share(sale_id):
    sale = _own_sale_or_404(sale_id)
    link = whatsapp_link(sale)
    if not link:
        flash("No phone number recorded for this sale.", "warning")
        return redirect(url_for("sales.receipt", sale_id=sale_id))
    return redirect(link)
