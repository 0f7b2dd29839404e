import base64
import binascii
import logging
import re
from decimal import Decimal, InvalidOperation
from io import BytesIO

import qrcode
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from enums.order_status import OrderStatus
from exceptions.order import OrderAlreadyPaidException, InvalidOrderStateException
from exceptions.payment import (
    InvalidAmountException,
    InvalidPayeeException,
    InvalidPaymentPayloadException,
    QRRenderException,
)
from models.order import OrderDTO
from models.payment import PaymentReferenceDTO, PaymentDTO, PaymentStatusDTO
from services.order import OrderService
from services.pricing import to_money
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)


class PromptPayService:
    """
    Thai PromptPay scan-to-pay codes (EMVCo merchant-presented QR).

    Payload layout, each field as tag(2) + length(2) + value:
        00 payload format indicator "01"
        01 point of initiation, "12" (dynamic, amount bound) or "11" (static)
        29 merchant account: 00 AID A000000677010111, then the payee as
           01 mobile (0066 + 9 digits), 02 tax id (13), or 03 e-wallet (15)
        58 country "TH"
        53 currency "764" (THB)
        54 amount, two decimals
        63 CRC-16/CCITT-FALSE of everything before it, "6304" included
    """

    ID_PAYLOAD_FORMAT = "00"
    ID_POI_METHOD = "01"
    ID_MERCHANT_INFORMATION_BOT = "29"
    ID_COUNTRY_CODE = "58"
    ID_TRANSACTION_CURRENCY = "53"
    ID_TRANSACTION_AMOUNT = "54"
    ID_CRC = "63"

    PAYLOAD_FORMAT_EMV_QRCPS_MERCHANT_PRESENTED_MODE = "01"
    POI_METHOD_STATIC = "11"
    POI_METHOD_DYNAMIC = "12"
    MERCHANT_INFORMATION_TEMPLATE_ID_GUID = "00"
    BOT_ID_MERCHANT_PHONE_NUMBER = "01"
    BOT_ID_MERCHANT_TAX_ID = "02"
    BOT_ID_MERCHANT_EWALLET_ID = "03"
    GUID_PROMPTPAY = "A000000677010111"
    TRANSACTION_CURRENCY_THB = "764"
    COUNTRY_CODE_TH = "TH"

    @staticmethod
    def _field(tag: str, value: str) -> str:
        return f"{tag}{len(value):02d}{value}"

    @staticmethod
    def crc16(data: str) -> str:
        return f"{binascii.crc_hqx(data.encode('ascii'), 0xFFFF):04X}"

    @staticmethod
    def _payee_field(payee: str) -> tuple[str, str]:
        digits = re.sub(r"\D", "", payee or "")
        if len(digits) == 10 and digits.startswith("0"):
            # 0812345678 -> 0066812345678
            return PromptPayService.BOT_ID_MERCHANT_PHONE_NUMBER, ("0" * 13 + "66" + digits[1:])[-13:]
        if len(digits) == 13:
            return PromptPayService.BOT_ID_MERCHANT_TAX_ID, digits
        if len(digits) == 15:
            return PromptPayService.BOT_ID_MERCHANT_EWALLET_ID, digits
        raise InvalidPayeeException(payee or "")

    @staticmethod
    def build_payload(payee: str, amount: Decimal) -> str:
        """
        Encode payee and amount as a PromptPay payload string.

        Raises:
            InvalidAmountException: amount <= 0
            InvalidPayeeException: payee is not 10 (mobile), 13 (tax id) or 15 (e-wallet) digits
        """
        try:
            amount = to_money(amount)
        except (InvalidOperation, ValueError):
            raise InvalidAmountException(amount)
        if amount <= 0:
            raise InvalidAmountException(amount)
        payee_tag, payee_value = PromptPayService._payee_field(payee)

        f = PromptPayService._field
        merchant_info = (
            f(PromptPayService.MERCHANT_INFORMATION_TEMPLATE_ID_GUID, PromptPayService.GUID_PROMPTPAY)
            + f(payee_tag, payee_value)
        )
        data = (
            f(PromptPayService.ID_PAYLOAD_FORMAT, PromptPayService.PAYLOAD_FORMAT_EMV_QRCPS_MERCHANT_PRESENTED_MODE)
            + f(PromptPayService.ID_POI_METHOD, PromptPayService.POI_METHOD_DYNAMIC)
            + f(PromptPayService.ID_MERCHANT_INFORMATION_BOT, merchant_info)
            + f(PromptPayService.ID_COUNTRY_CODE, PromptPayService.COUNTRY_CODE_TH)
            + f(PromptPayService.ID_TRANSACTION_CURRENCY, PromptPayService.TRANSACTION_CURRENCY_THB)
            + f(PromptPayService.ID_TRANSACTION_AMOUNT, f"{amount:.2f}")
            + PromptPayService.ID_CRC + "04"
        )
        return data + PromptPayService.crc16(data)

    @staticmethod
    def _parse_fields(data: str) -> dict[str, str]:
        fields = {}
        position = 0
        while position < len(data):
            if position + 4 > len(data):
                raise InvalidPaymentPayloadException("truncated field header")
            tag = data[position:position + 2]
            length_str = data[position + 2:position + 4]
            if not length_str.isdigit():
                raise InvalidPaymentPayloadException(f"bad length for tag {tag}")
            length = int(length_str)
            value = data[position + 4:position + 4 + length]
            if len(value) != length:
                raise InvalidPaymentPayloadException(f"truncated value for tag {tag}")
            fields[tag] = value
            position += 4 + length
        return fields

    @staticmethod
    def decode(payload: str) -> tuple[str, Decimal | None]:
        """
        Decode a payload back to (payee, amount).

        Mobile payees come back in local form (0812345678). amount is None for
        static codes that let the payer choose the sum.

        Raises:
            InvalidPaymentPayloadException: malformed payload or CRC mismatch
        """
        if not payload or len(payload) < 8:
            raise InvalidPaymentPayloadException("payload too short")
        body, checksum = payload[:-4], payload[-4:]
        if not body.endswith(PromptPayService.ID_CRC + "04"):
            raise InvalidPaymentPayloadException("missing CRC field")
        if PromptPayService.crc16(body) != checksum.upper():
            raise InvalidPaymentPayloadException("CRC mismatch")

        fields = PromptPayService._parse_fields(payload)
        merchant = PromptPayService._parse_fields(fields.get(PromptPayService.ID_MERCHANT_INFORMATION_BOT, ""))
        if merchant.get(PromptPayService.MERCHANT_INFORMATION_TEMPLATE_ID_GUID) != PromptPayService.GUID_PROMPTPAY:
            raise InvalidPaymentPayloadException("not a PromptPay payload")

        if PromptPayService.BOT_ID_MERCHANT_PHONE_NUMBER in merchant:
            number = merchant[PromptPayService.BOT_ID_MERCHANT_PHONE_NUMBER].lstrip("0")
            payee = "0" + number[2:] if number.startswith("66") else number
        elif PromptPayService.BOT_ID_MERCHANT_TAX_ID in merchant:
            payee = merchant[PromptPayService.BOT_ID_MERCHANT_TAX_ID]
        elif PromptPayService.BOT_ID_MERCHANT_EWALLET_ID in merchant:
            payee = merchant[PromptPayService.BOT_ID_MERCHANT_EWALLET_ID]
        else:
            raise InvalidPaymentPayloadException("payee missing")

        amount = None
        if PromptPayService.ID_TRANSACTION_AMOUNT in fields:
            try:
                amount = Decimal(fields[PromptPayService.ID_TRANSACTION_AMOUNT])
            except InvalidOperation:
                raise InvalidPaymentPayloadException("amount is not a number")
        return payee, amount

    @staticmethod
    def render_qr(payload: str) -> str:
        """Render the payload as a PNG data URL."""
        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=qrcode.constants.ERROR_CORRECT_M,
                box_size=10,
                border=1,
            )
            qr.add_data(payload)
            qr.make(fit=True)
            img = qr.make_image(fill_color="black", back_color="white")

            bio = BytesIO()
            img.save(bio, 'PNG')
        except Exception as e:
            logger.error(f"QR rendering failed: {e}", exc_info=True)
            raise QRRenderException(str(e)) from e
        return "data:image/png;base64," + base64.b64encode(bio.getvalue()).decode("ascii")

    @staticmethod
    def generate(payee: str, amount: Decimal) -> PaymentReferenceDTO:
        payload = PromptPayService.build_payload(payee, amount)
        return PaymentReferenceDTO(
            payload=payload,
            qr_image=PromptPayService.render_qr(payload),
            payee=payee,
            amount=to_money(amount),
        )


class PaymentService:
    """Attaches PromptPay codes to pending orders and reports payment status."""

    @staticmethod
    def get_instructions(total: Decimal) -> list[str]:
        return [
            "Open your banking app",
            "Scan the QR code to pay via PromptPay",
            f"Pay exactly {to_money(total)} {config.CURRENCY_CODE}",
            "Wait for admin approval (usually within 24 hours)",
            "You will receive email notification when approved",
        ]

    @staticmethod
    def _payload_matches(payload: str | None, total: Decimal) -> bool:
        if not payload:
            return False
        try:
            _, amount = PromptPayService.decode(payload)
        except InvalidPaymentPayloadException:
            return False
        return amount is not None and amount == to_money(total)

    @staticmethod
    async def _bundle_code(bundle_id: str, pending: list[OrderDTO],
                           session: AsyncSession | Session) -> tuple[str, Decimal, bool]:
        """
        Code for the pending orders of a bundle: (payload, total, is_existing).

        The code already attached is reused as long as the amount it encodes
        still equals the sum of the pending orders. Otherwise a new code for the
        current sum replaces it on every pending order.
        """
        total = sum((o.final_amount for o in pending), Decimal("0"))
        existing = next((o.payment_payload for o in pending if o.payment_payload), None)
        if PaymentService._payload_matches(existing, total):
            return existing, total, True

        if existing:
            logging.warning(f"Bundle {bundle_id}: stored payment code no longer matches {total}, regenerating")
        payload = PromptPayService.build_payload(config.PROMPTPAY_ID, total)
        await OrderService.attach_payment([o.id for o in pending], payload, session)
        for order in pending:
            order.payment_payload = payload
        return payload, total, False

    @staticmethod
    def _bundle_payment(bundle_id: str, pending: list[OrderDTO], payload: str, total: Decimal,
                        is_existing: bool) -> PaymentDTO:
        logging.info(f"💳 Payment for bundle {bundle_id} ({len(pending)} orders), amount {total}")
        return PaymentDTO(
            orders=pending,
            bundle_id=bundle_id,
            total=to_money(total),
            currency=config.CURRENCY_CODE,
            payload=payload,
            qr_image=PromptPayService.render_qr(payload),
            instructions=PaymentService.get_instructions(total),
            is_existing=is_existing,
        )

    @staticmethod
    @TransactionManager.with_retry()
    async def create_item_payment(user_id: int, item_id: int, session: AsyncSession | Session) -> PaymentDTO:
        """
        Pending order plus PromptPay code for a single item.

        Safe to repeat: a second call returns the same pending order and the
        code already attached to it. When the pending order came from a cart
        checkout, the bundle's code for all of its pending orders is returned.
        """
        async with TransactionManager.transaction(session):
            order = await OrderService.create_single(user_id, item_id, session)
            if order.bundle_id is not None:
                orders = await OrderService.get_bundle(order.bundle_id, user_id, session, for_update=True)
                pending = [o for o in orders if o.status == OrderStatus.PENDING]
                payload, total, is_existing = await PaymentService._bundle_code(order.bundle_id, pending, session)
            else:
                is_existing = PaymentService._payload_matches(order.payment_payload, order.final_amount)
                if is_existing:
                    payload = order.payment_payload
                else:
                    payload = PromptPayService.build_payload(config.PROMPTPAY_ID, order.final_amount)
                    await OrderService.attach_payment([order.id], payload, session)
                    order.payment_payload = payload

        if order.bundle_id is not None:
            return PaymentService._bundle_payment(order.bundle_id, pending, payload, total, is_existing)

        logging.info(f"💳 Payment for order {order.id} ({'existing' if is_existing else 'new'}), "
                     f"amount {order.final_amount}")
        return PaymentDTO(
            orders=[order],
            total=order.final_amount,
            currency=config.CURRENCY_CODE,
            payload=payload,
            qr_image=PromptPayService.render_qr(payload),
            instructions=PaymentService.get_instructions(order.final_amount),
            is_existing=is_existing,
        )

    @staticmethod
    async def create_bundle_payment(user_id: int, bundle_id: str, session: AsyncSession | Session) -> PaymentDTO:
        """
        PromptPay code for every pending order of a checkout bundle.

        Raises:
            BundleNotFoundException: No orders under bundle_id for the user
            OrderAlreadyPaidException: Part of the bundle is already paid
        """
        async with TransactionManager.transaction(session):
            orders = await OrderService.get_bundle(bundle_id, user_id, session, for_update=True)
            paid = next((o for o in orders if o.status == OrderStatus.PAID), None)
            if paid is not None:
                raise OrderAlreadyPaidException(paid.id, bundle_id)

            pending = [o for o in orders if o.status == OrderStatus.PENDING]
            if not pending:
                raise InvalidOrderStateException(orders[0].id, orders[0].status.value, OrderStatus.PENDING.value)
            payload, total, is_existing = await PaymentService._bundle_code(bundle_id, pending, session)

        return PaymentService._bundle_payment(bundle_id, pending, payload, total, is_existing)

    @staticmethod
    def _status_of(orders: list[OrderDTO]) -> OrderStatus:
        statuses = {o.status for o in orders}
        if statuses == {OrderStatus.PAID}:
            return OrderStatus.PAID
        if OrderStatus.PENDING in statuses:
            return OrderStatus.PENDING
        if OrderStatus.PAID in statuses:
            return OrderStatus.PAID
        if OrderStatus.REFUNDED in statuses:
            return OrderStatus.REFUNDED
        return OrderStatus.FAILED

    @staticmethod
    async def get_order_status(user_id: int, order_id: int, session: AsyncSession | Session) -> PaymentStatusDTO:
        order = await OrderService.get_for_user(order_id, user_id, session)
        return PaymentStatusDTO(
            order_ids=[order.id],
            bundle_id=order.bundle_id,
            status=order.status,
            total=order.final_amount,
            is_paid=order.status == OrderStatus.PAID,
        )

    @staticmethod
    async def get_bundle_status(user_id: int, bundle_id: str, session: AsyncSession | Session) -> PaymentStatusDTO:
        orders = await OrderService.get_bundle(bundle_id, user_id, session)
        status = PaymentService._status_of(orders)
        return PaymentStatusDTO(
            order_ids=[o.id for o in orders],
            bundle_id=bundle_id,
            status=status,
            total=to_money(sum((o.final_amount for o in orders), Decimal("0"))),
            is_paid=all(o.status == OrderStatus.PAID for o in orders),
        )
