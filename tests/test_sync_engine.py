import pytest
from sqlalchemy import func, select

from selfecho.exceptions import MailboxAuthError, MailboxConnectionError
from selfecho.models import CachedMessage, MailAccount


async def persisted_uids(message_repo, account_id: int) -> list[int]:
    rows = await message_repo.list_recent(account_id, limit=1000)
    return sorted(row.uid for row in rows)


async def stored_cursor(account_repo, account_id: int) -> tuple[int, int]:
    result = await account_repo.session.execute(
        select(MailAccount.last_uid, MailAccount.last_uid_validity).where(MailAccount.id == account_id)
    )
    return tuple(result.one())


async def test_empty_mailbox_resets_cursor(sync_engine, account_config, account_repo, message_repo, mailbox):
    mailbox.uid_validity = 77

    result = await sync_engine.sync(account_config, limit=50)

    assert result.reset is True
    assert result.last_uid == 0
    assert await message_repo.count(account_config.id) == 0
    assert await stored_cursor(account_repo, account_config.id) == (0, 77)
    assert (account_config.last_uid, account_config.last_uid_validity) == (0, 77)


async def test_emptied_mailbox_clears_cached_messages(
    sync_engine, account_config, account_repo, message_repo, mailbox
):
    for n in range(3):
        mailbox.add(f"message {n}")
    await sync_engine.sync(account_config, limit=50)
    assert await message_repo.count(account_config.id) == 3

    mailbox.messages.clear()
    result = await sync_engine.sync(account_config, limit=50)

    assert result.reset is True
    assert result.last_uid == 0
    assert await message_repo.count(account_config.id) == 0
    assert await stored_cursor(account_repo, account_config.id) == (0, 1)
    assert (account_config.last_uid, account_config.last_uid_validity) == (0, 1)


async def test_incremental_sync_scenario(sync_engine, account_config, account_repo, message_repo, mailbox):
    for n in range(5):
        mailbox.add(f"message {n}")

    first = await sync_engine.sync(account_config, limit=50)
    assert first.new_uids == [1, 2, 3, 4, 5]
    assert await message_repo.count(account_config.id) == 5
    assert await stored_cursor(account_repo, account_config.id) == (5, 1)

    mailbox.add("message 5")
    mailbox.add("message 6")
    second = await sync_engine.sync(account_config, limit=50)
    assert second.new_uids == [6, 7]
    assert await message_repo.count(account_config.id) == 7
    assert account_config.last_uid == max(await persisted_uids(message_repo, account_config.id))

    mailbox.renumber(uid_validity=2)
    third = await sync_engine.sync(account_config, limit=50)
    assert third.reset is True
    assert third.new_uids == [1, 2, 3, 4, 5, 6, 7]
    uid_validities = await message_repo.session.execute(
        select(CachedMessage.uid_validity).where(CachedMessage.account_id == account_config.id).distinct()
    )
    assert uid_validities.scalars().all() == [2]
    assert await stored_cursor(account_repo, account_config.id) == (7, 2)


async def test_sync_without_new_messages_is_a_no_op(sync_engine, account_config, account_repo, message_repo, mailbox):
    for n in range(3):
        mailbox.add(f"message {n}")
    await sync_engine.sync(account_config, limit=50)
    mailbox.detail_fetches.clear()

    result = await sync_engine.sync(account_config, limit=50)

    assert result.new_uids == []
    assert mailbox.detail_fetches == []
    assert await message_repo.count(account_config.id) == 3
    assert await stored_cursor(account_repo, account_config.id) == (3, 1)


async def test_window_limits_the_initial_sync(sync_engine, account_config, message_repo, mailbox):
    for n in range(10):
        mailbox.add(f"message {n}")

    result = await sync_engine.sync(account_config, limit=4)

    assert result.new_uids == [7, 8, 9, 10]
    assert await persisted_uids(message_repo, account_config.id) == [7, 8, 9, 10]


async def test_bodies_are_decoded_and_stored(sync_engine, account_config, message_repo, mailbox):
    uid = mailbox.add("Hi", body="line one\nline <two>", flags=("\\Seen",))

    await sync_engine.sync(account_config, limit=50)

    row = await message_repo.get_by_uid(account_config.id, uid)
    assert row.subject == "Hi"
    assert row.from_addr == "alice@example.com"
    assert row.flags == frozenset({"\\Seen"})
    assert row.body_plain == "line one\nline <two>"
    assert row.body_html == "line one<br>line &lt;two&gt;"


async def test_missing_body_is_stored_with_headers_only(sync_engine, account_config, message_repo, mailbox):
    mailbox.add("one")
    missing = mailbox.add("two")
    mailbox.missing_bodies.add(missing)

    result = await sync_engine.sync(account_config, limit=50)

    assert result.last_uid == missing
    row = await message_repo.get_by_uid(account_config.id, missing)
    assert row.subject == "two"
    assert row.body_html == ""
    assert row.body_plain == ""


async def test_failed_fetch_leaves_cursor_untouched(sync_engine, account_config, account_repo, message_repo, mailbox):
    mailbox.add("one")
    await sync_engine.sync(account_config, limit=50)
    mailbox.add("two")
    mailbox.fail_command = "uid"

    with pytest.raises(MailboxConnectionError):
        await sync_engine.sync(account_config, limit=50)

    assert account_config.last_uid == 1
    assert await stored_cursor(account_repo, account_config.id) == (1, 1)
    assert await message_repo.count(account_config.id) == 1
    assert mailbox.logouts == mailbox.connections


async def test_failed_commit_rolls_back(sync_engine, account_config, account_repo, message_repo, mailbox, monkeypatch):
    mailbox.add("one")

    async def broken_update_cursor(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(account_repo, "update_cursor", broken_update_cursor)

    with pytest.raises(RuntimeError):
        await sync_engine.sync(account_config, limit=50)

    assert account_config.last_uid == 0
    assert await message_repo.count(account_config.id) == 0


async def test_auth_failure_propagates(sync_engine, account_config, mailbox):
    mailbox.password = "changed"
    mailbox.add("one")

    with pytest.raises(MailboxAuthError):
        await sync_engine.sync(account_config, limit=50)
    assert account_config.last_uid == 0


async def test_connection_failure_propagates(sync_engine, account_config, mailbox):
    mailbox.fail_command = "hello"

    with pytest.raises(MailboxConnectionError):
        await sync_engine.sync(account_config, limit=50)


async def test_watermark_matches_highest_persisted_uid(sync_engine, account_config, message_repo, mailbox):
    for n in range(3):
        mailbox.add(f"message {n}")
    await sync_engine.sync(account_config, limit=50)

    highest = await message_repo.session.execute(
        select(func.max(CachedMessage.uid)).where(CachedMessage.account_id == account_config.id)
    )
    assert highest.scalar_one() == account_config.last_uid
