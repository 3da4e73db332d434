from flask_wtf import FlaskForm
from wtforms import (
    StringField, PasswordField, SubmitField, TextAreaField,
    SelectField, BooleanField, DateField
)
from wtforms.validators import DataRequired, EqualTo, Length, Optional, ValidationError

from goldledger.ledger import ITEM_CHOICES, MAX_AMOUNT, MONTHS, format_inr, parse_amount


def amount_within_limit(form, field):
    if parse_amount(field.data) > MAX_AMOUNT:
        raise ValidationError(f"{field.label.text} must not exceed {format_inr(MAX_AMOUNT)}.")


class RegistrationForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired(), Length(min=3, max=64)])
    display_name = StringField('Shop / display name', validators=[Optional(), Length(max=120)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])
    confirm = PasswordField('Repeat password', validators=[DataRequired(), EqualTo('password')])
    submit = SubmitField('Create account')


class LoginForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])
    remember = BooleanField('Remember me')
    submit = SubmitField('Sign in')


class SaleForm(FlaskForm):
    customer_name = StringField("Customer Name", validators=[Length(max=120)])
    customer_phone = StringField("Phone Number", validators=[Optional(), Length(max=20)])

    item_selection = SelectField(
        "Item",
        choices=[(name, name) for name in ITEM_CHOICES],
        default=ITEM_CHOICES[0]
    )
    custom_item_name = StringField("Custom Item Name", validators=[Optional(), Length(max=120)])
    huid = StringField("HUID / Description", validators=[Optional(), Length(max=64)])
    notes = TextAreaField("Notes", validators=[Optional()])

    # free text: the ledger strips anything that is not a digit or a dot
    item_base_price = StringField("Item Base Price (₹)", validators=[Optional(), Length(max=32), amount_within_limit])
    gst_amount = StringField("GST Amount (₹)", validators=[Optional(), Length(max=32), amount_within_limit])
    discount_amount = StringField("Discount (₹)", validators=[Optional(), Length(max=32), amount_within_limit])

    submit = SubmitField("Save Sale")

    def sale_input(self):
        return {
            "customer_name": self.customer_name.data,
            "customer_phone": self.customer_phone.data,
            "item_selection": self.item_selection.data,
            "custom_item_name": self.custom_item_name.data,
            "huid": self.huid.data,
            "notes": self.notes.data,
            "item_base_price": self.item_base_price.data,
            "gst_amount": self.gst_amount.data,
            "discount_amount": self.discount_amount.data,
        }


class SalesHistoryFilterForm(FlaskForm):
    class Meta:
        csrf = False

    q = StringField("Search name, phone or HUID", validators=[Optional(), Length(max=120)])
    period = SelectField(
        "Period",
        choices=[
            ("", "All time"),
            ("today", "Today"),
            ("yesterday", "Yesterday"),
            ("week", "Last 7 days"),
            ("month", "Last 30 days"),
            ("custom", "Custom range")
        ],
        validators=[Optional()]
    )

    start_date = DateField("From", validators=[Optional()])
    end_date = DateField("To", validators=[Optional()])

    submit = SubmitField("Apply")


class ExportForm(FlaskForm):
    class Meta:
        csrf = False

    month = SelectField(
        "Month",
        coerce=int,
        choices=[(i, name) for i, name in enumerate(MONTHS, start=1)]
    )
    year = SelectField("Year", coerce=int, choices=[])
    format = SelectField(
        "Format",
        choices=[("xlsx", "Excel"), ("csv", "CSV"), ("tsv", "Copy (tab separated)")]
    )
