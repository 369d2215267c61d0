import pytest
from sqlalchemy import func, select

from conftest import actor, at
from core.errors import ForbiddenError, NotFoundError, ValidationError
from models import Booking, BookingStatus, Message
from models.user import Role
from services.messaging_service import MessagingService


@pytest.fixture
async def booking_id(database, seed):
    async with database.session() as session:
        booking = Booking(
            parent_user_id=seed.parent_id,
            nanny_user_id=seed.nanny_id,
            start_time=at(10),
            end_time=at(12),
            hourly_rate_nis=60,
            total_amount_nis=120,
            status=BookingStatus.REQUESTED,
        )
        session.add(booking)
        await session.commit()
        return booking.id


async def send(database, booking_id, user_id, text):
    async with database.session() as session:
        return await MessagingService(session).send_message(booking_id, user_id, text)


async def read(database, booking_id, user_id, **kwargs):
    async with database.session() as session:
        return await MessagingService(session).list_messages(booking_id, user_id, **kwargs)


async def test_send_trims_and_targets_other_party(database, seed, booking_id):
    delivery = await send(database, booking_id, seed.parent_id, "  Hi Maya!  ")

    assert delivery.message.text == "Hi Maya!"
    assert delivery.message.is_read is False
    assert delivery.message.sender.full_name == "Dana Levi"
    assert delivery.recipient_user_id == seed.nanny_id


async def test_blank_message_is_not_stored(database, seed, booking_id):
    with pytest.raises(ValidationError):
        await send(database, booking_id, seed.parent_id, "   \n ")

    async with database.session() as session:
        assert await session.scalar(select(func.count(Message.id))) == 0


async def test_overlong_message_is_rejected(database, seed, booking_id):
    with pytest.raises(ValidationError):
        await send(database, booking_id, seed.parent_id, "x" * 2001)
    delivery = await send(database, booking_id, seed.parent_id, "x" * 2000)
    assert len(delivery.message.text) == 2000


async def test_outsider_cannot_read_or_send(database, seed, booking_id):
    with pytest.raises(ForbiddenError):
        await send(database, booking_id, seed.other_parent_id, "hello")
    with pytest.raises(ForbiddenError):
        await read(database, booking_id, seed.other_parent_id)
    with pytest.raises(NotFoundError):
        await read(database, 9999, seed.parent_id)


async def test_reading_marks_other_party_messages_read(database, seed, booking_id):
    await send(database, booking_id, seed.nanny_id, "Hello")
    await send(database, booking_id, seed.nanny_id, "Are you there?")
    await send(database, booking_id, seed.parent_id, "Yes!")

    first = await read(database, booking_id, seed.parent_id)
    assert [m.text for m in first.messages] == ["Hello", "Are you there?", "Yes!"]
    assert first.pagination.total == 3

    async with database.session() as session:
        rows = (await session.execute(select(Message).order_by(Message.id))).scalars().all()
    assert [m.is_read for m in rows] == [True, True, False]

    # Second read by the same party changes nothing
    second = await read(database, booking_id, seed.parent_id)
    assert all(m.is_read for m in second.messages if m.from_user_id == seed.nanny_id)
    async with database.session() as session:
        unread = await session.scalar(select(func.count(Message.id)).where(Message.is_read.is_(False)))
    assert unread == 1


async def test_messages_page_limit_is_capped(database, seed, booking_id):
    await send(database, booking_id, seed.parent_id, "one")
    page = await read(database, booking_id, seed.parent_id, page=1, limit=1000)
    assert page.pagination.limit == 100
    assert page.pagination.total_pages is None


async def test_conversations_show_last_message_and_unread(database, seed, booking_id):
    await send(database, booking_id, seed.parent_id, "First")
    await send(database, booking_id, seed.parent_id, "Second")
    await send(database, booking_id, seed.nanny_id, "Reply")

    async with database.session() as session:
        service = MessagingService(session)
        for_nanny = await service.list_conversations(actor(seed.nanny_id, Role.NANNY))
        for_parent = await service.list_conversations(actor(seed.parent_id, Role.PARENT))
        for_outsider = await service.list_conversations(actor(seed.other_parent_id, Role.PARENT))

    assert len(for_nanny) == 1
    assert for_nanny[0].booking_id == booking_id
    assert for_nanny[0].last_message.text == "Reply"
    assert for_nanny[0].unread_count == 2
    assert for_nanny[0].parent.full_name == "Dana Levi"
    assert for_parent[0].unread_count == 1
    assert for_outsider == []
