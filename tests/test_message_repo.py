from datetime import datetime, timezone

import pytest

from selfecho.exceptions import EntityNotFoundError
from selfecho.repos.message import MessageFields


def fields(subject: str, day: int | None = 1, flags: frozenset[str] = frozenset()) -> MessageFields:
    return MessageFields(
        subject=subject,
        from_addr="alice@example.com",
        msg_date=datetime(2024, 1, day, tzinfo=timezone.utc) if day else None,
        flags=flags,
        body_html=f"<p>{subject}</p>",
        body_plain=subject,
    )


async def test_upsert_overwrites_same_key(stored_account, message_repo):
    await message_repo.upsert(stored_account.id, 1, 7, fields("first"))
    await message_repo.upsert(stored_account.id, 1, 7, fields("second", flags=frozenset({"\\Seen"})))
    await message_repo.commit()

    assert await message_repo.count(stored_account.id) == 1
    row = await message_repo.get_by_uid(stored_account.id, 1, 7)
    assert row.subject == "second"
    assert row.flags == frozenset({"\\Seen"})


async def test_same_uid_in_another_epoch_is_a_different_row(stored_account, message_repo):
    await message_repo.upsert(stored_account.id, 1, 7, fields("old epoch"))
    await message_repo.upsert(stored_account.id, 1, 8, fields("new epoch"))
    await message_repo.commit()

    assert await message_repo.count(stored_account.id) == 2
    assert (await message_repo.get_by_uid(stored_account.id, 1, 8)).subject == "new epoch"


async def test_list_recent_orders_by_date_with_undated_last(stored_account, message_repo):
    await message_repo.upsert(stored_account.id, 1, 7, fields("oldest", day=1))
    await message_repo.upsert(stored_account.id, 2, 7, fields("undated", day=None))
    await message_repo.upsert(stored_account.id, 3, 7, fields("newest", day=3))
    await message_repo.upsert(stored_account.id, 4, 7, fields("middle", day=2))
    await message_repo.commit()

    rows = await message_repo.list_recent(stored_account.id, limit=10)
    assert [row.subject for row in rows] == ["newest", "middle", "oldest", "undated"]

    second_page = await message_repo.list_recent(stored_account.id, limit=2, offset=2)
    assert [row.subject for row in second_page] == ["oldest", "undated"]


async def test_get_by_uid_raises_when_missing(stored_account, message_repo):
    with pytest.raises(EntityNotFoundError):
        await message_repo.get_by_uid(stored_account.id, 99)


async def test_delete_all_by_account(stored_account, message_repo):
    for uid in range(1, 4):
        await message_repo.upsert(stored_account.id, uid, 7, fields(f"m{uid}"))
    await message_repo.commit()

    assert await message_repo.delete_all_by_account(stored_account.id) == 3
    await message_repo.commit()
    assert await message_repo.count(stored_account.id) == 0
