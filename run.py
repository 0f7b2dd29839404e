import argparse
import asyncio
import logging
import sys
from decimal import Decimal

from utils.logging_config import setup_logging

# Initialize centralized logging configuration
setup_logging()

from db import create_db_and_tables, get_db_session
from enums.item_status import ItemStatus
from enums.order_filter import OrderFilterType
from exceptions import MarketplaceException
from models.bundle_discount import BundleDiscountTierDTO
from repositories.bundle_discount import BundleDiscountRepository
from services.item import ItemService
from services.order_management import OrderManagementService
from utils.error_handler import handle_service_error
from utils.transaction_manager import TransactionManager


def _print_order(order) -> None:
    buyer = f" {order.user_name} <{order.user_email}>" if getattr(order, "user_name", None) else ""
    title = f" \"{order.item_title}\"" if getattr(order, "item_title", None) else ""
    bundle = f" bundle={order.bundle_id}" if order.bundle_id else ""
    print(f"#{order.id} [{order.status.value}]{title}{buyer} {order.final_amount}{bundle}")


async def init_db(args) -> None:
    await create_db_and_tables()
    logging.info("✅ Database ready")


async def add_tier(args) -> None:
    async with TransactionManager.atomic_transaction() as session:
        tier_id = await BundleDiscountRepository.add(BundleDiscountTierDTO(
            min_items=args.min_items,
            discount_percentage=Decimal(args.percentage),
        ), session)
    logging.info(f"Bundle tier {tier_id} added: {args.min_items}+ items, {args.percentage}%")


async def pending(args) -> None:
    async with get_db_session() as session:
        orders = await OrderManagementService.list_pending_payments(session)
    for order in orders:
        _print_order(order)
    print(f"{len(orders)} pending")


async def approve(args) -> None:
    async with get_db_session() as session:
        if args.bundle:
            orders = await OrderManagementService.approve_bundle(args.bundle, args.staff_id, session, args.reference)
        else:
            orders = await OrderManagementService.approve_many(args.order_ids, args.staff_id, session,
                                                               args.reference)
    for order in orders:
        _print_order(order)


async def reject(args) -> None:
    async with get_db_session() as session:
        order = await OrderManagementService.reject(args.order_id, args.staff_id, args.reason, session)
    _print_order(order)


async def refund(args) -> None:
    async with get_db_session() as session:
        order = await OrderManagementService.refund(args.order_id, args.staff_id, session)
    _print_order(order)


async def item_status(args) -> None:
    async with get_db_session() as session:
        item = await ItemService.change_status(args.item_id, ItemStatus(args.status), args.staff_id, session)
    print(f"#{item.id} \"{item.title}\" [{item.status.value}]")


async def purchases(args) -> None:
    async with get_db_session() as session:
        page = await OrderManagementService.list_purchases(
            session, OrderFilterType[args.filter.upper()], args.limit, args.offset
        )
    for order in page.items:
        _print_order(order)
    print(f"{page.offset + len(page.items)}/{page.total}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Marketplace staff console")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create missing tables").set_defaults(handler=init_db)

    p = commands.add_parser("add-tier", help="Add a bundle discount tier")
    p.add_argument("min_items", type=int)
    p.add_argument("percentage")
    p.set_defaults(handler=add_tier)

    commands.add_parser("pending", help="List payments awaiting approval").set_defaults(handler=pending)

    p = commands.add_parser("approve", help="Confirm bank transfers")
    p.add_argument("order_ids", type=int, nargs="*")
    p.add_argument("--bundle", help="Approve every pending order of a bundle")
    p.add_argument("--staff-id", type=int, required=True)
    p.add_argument("--reference", help="Bank reference of the transfer")
    p.set_defaults(handler=approve)

    p = commands.add_parser("reject", help="Reject a pending payment")
    p.add_argument("order_id", type=int)
    p.add_argument("--staff-id", type=int, required=True)
    p.add_argument("--reason", required=True)
    p.set_defaults(handler=reject)

    p = commands.add_parser("refund", help="Refund a paid order")
    p.add_argument("order_id", type=int)
    p.add_argument("--staff-id", type=int, required=True)
    p.set_defaults(handler=refund)

    p = commands.add_parser("item-status", help="Approve, reject, list or unlist an item")
    p.add_argument("item_id", type=int)
    p.add_argument("status", choices=[s.value for s in ItemStatus])
    p.add_argument("--staff-id", type=int, required=True)
    p.set_defaults(handler=item_status)

    p = commands.add_parser("purchases", help="Paginated purchase listing")
    p.add_argument("--filter", default="all", choices=[f.name.lower() for f in OrderFilterType])
    p.add_argument("--limit", type=int)
    p.add_argument("--offset", type=int, default=0)
    p.set_defaults(handler=purchases)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "approve" and not args.order_ids and not args.bundle:
        parser.error("approve needs order ids or --bundle")
    try:
        asyncio.run(args.handler(args))
    except MarketplaceException as e:
        response = handle_service_error(e)
        print(f"{response.error}: {response.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
