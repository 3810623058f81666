import asyncio

from app.core import WebhookDispatcher, classify
from app.schemas import GenerationResult, OwnershipState
from app.utils import ExternalReadFailure, ExternalWriteFailure, GenerationTimeout
from tests.conftest import BOT_AGENT_ID, HUMAN_AGENT_ID


async def test_fresh_conversation_gets_reply(dispatcher, mock_freshchat, mock_generator, store, user_message_factory):
    outcome = await dispatcher.dispatch(classify(user_message_factory(text="Hello")))

    assert outcome.responded and not outcome.escalated
    mock_freshchat.assign_conversation.assert_awaited_once_with("conv-1", BOT_AGENT_ID)
    mock_generator.respond.assert_awaited_once_with(None, "Hello")
    mock_freshchat.send_message.assert_awaited_once_with("conv-1", "Hello! How can I help?", actor_id=BOT_AGENT_ID)
    record = store.get("conv-1")
    assert record.ownership_state == OwnershipState.WITH_AUTOMATION
    assert record.session_handle == "thread_1"


async def test_hand_off_reply_escalates(dispatcher, mock_freshchat, mock_generator, store, user_message_factory):
    mock_generator.respond.return_value = GenerationResult(
        reply_text="Please allow me to connect you to our Human Representative.", session_handle="thread_1"
    )

    outcome = await dispatcher.dispatch(classify(user_message_factory(text="I want a person")))

    assert outcome.responded and outcome.escalated
    mock_freshchat.send_message.assert_awaited_once()
    mock_freshchat.assign_conversation.assert_any_await("conv-1", HUMAN_AGENT_ID)
    record = store.get("conv-1")
    assert record.is_escalated
    assert record.session_handle is None


async def test_hand_off_phrase_from_scenario_text(dispatcher, mock_freshchat, mock_generator, store, user_message_factory):
    mock_generator.respond.return_value = GenerationResult(
        reply_text="Sure, I will connect you to our Human Representative.", session_handle="thread_1"
    )

    outcome = await dispatcher.dispatch(classify(user_message_factory(text="Can I talk to someone?")))

    assert outcome.escalated
    assert store.is_escalated("conv-1")
    mock_freshchat.assign_conversation.assert_any_await("conv-1", HUMAN_AGENT_ID)


async def test_hand_off_phrase_is_matched_before_formatting(dispatcher, mock_freshchat, mock_generator, user_message_factory):
    mock_generator.respond.return_value = GenerationResult(
        reply_text="A [human agent](https://example.com/team) will follow up.", session_handle="thread_1"
    )

    outcome = await dispatcher.dispatch(classify(user_message_factory(text="Refund please")))

    mock_freshchat.send_message.assert_awaited_once_with(
        "conv-1", "A https://example.com/team will follow up.", actor_id=BOT_AGENT_ID
    )
    assert outcome.escalated


async def test_resolution_message_returns_to_bot(dispatcher, mock_freshchat, store, agent_message_factory):
    store.set_state("conv-1", OwnershipState.WITH_HUMAN)

    await dispatcher.dispatch(classify(agent_message_factory(text="Thanks! I am closing this conversation.")))

    assert not store.is_escalated("conv-1")
    mock_freshchat.assign_conversation.assert_awaited_once_with("conv-1", BOT_AGENT_ID)
    mock_freshchat.send_message.assert_awaited_once_with("conv-1", "I'm back!", actor_id=BOT_AGENT_ID)


async def test_media_only_message_is_acknowledged(dispatcher, mock_freshchat, mock_generator, user_message_factory):
    await dispatcher.dispatch(classify(user_message_factory(text=None, media=["image"])))

    mock_generator.respond.assert_not_awaited()
    mock_freshchat.send_message.assert_awaited_once_with(
        "conv-1", "Please describe your question in text.", actor_id=BOT_AGENT_ID
    )


async def test_media_ack_send_failure_does_not_escalate(dispatcher, mock_freshchat, store, user_message_factory):
    mock_freshchat.send_message.side_effect = ExternalWriteFailure("down", operation="send message")

    await dispatcher.dispatch(classify(user_message_factory(text=None, media=["file"])))

    assert not store.is_escalated("conv-1")


async def test_media_ignored_while_with_human(dispatcher, mock_freshchat, user_message_factory):
    mock_freshchat.get_assignee.return_value = HUMAN_AGENT_ID

    await dispatcher.dispatch(classify(user_message_factory(text=None, media=["image"])))

    mock_freshchat.send_message.assert_not_awaited()


async def test_fetch_failure_still_responds(dispatcher, mock_freshchat, mock_generator, user_message_factory):
    mock_freshchat.get_assignee.side_effect = ExternalReadFailure("timeout", operation="get conversation")

    outcome = await dispatcher.dispatch(classify(user_message_factory()))

    assert outcome.responded
    mock_generator.respond.assert_awaited_once()
    mock_freshchat.assign_conversation.assert_not_awaited()


async def test_reopened_conversation_is_answered(dispatcher, mock_generator, store, user_message_factory):
    store.set_state("conv-1", OwnershipState.WITH_HUMAN)

    outcome = await dispatcher.dispatch(classify(user_message_factory(text="Hi again")))

    assert outcome.responded
    mock_generator.respond.assert_awaited_once_with(None, "Hi again")
    assert not store.is_escalated("conv-1")


async def test_bot_stays_silent_while_human_assigned(dispatcher, mock_freshchat, mock_generator, user_message_factory):
    mock_freshchat.get_assignee.return_value = HUMAN_AGENT_ID

    outcome = await dispatcher.dispatch(classify(user_message_factory()))

    assert not outcome.responded
    mock_generator.respond.assert_not_awaited()
    mock_freshchat.send_message.assert_not_awaited()


async def test_generation_failure_hands_off_silently(dispatcher, mock_freshchat, mock_generator, store, user_message_factory):
    mock_generator.respond.side_effect = GenerationTimeout("no reply after 60 polls")

    outcome = await dispatcher.dispatch(classify(user_message_factory()))

    assert not outcome.responded
    assert outcome.escalated
    assert "60 polls" in outcome.error
    mock_freshchat.send_message.assert_not_awaited()
    assert store.is_escalated("conv-1")


async def test_send_failure_hands_off(dispatcher, mock_freshchat, store, user_message_factory):
    mock_freshchat.send_message.side_effect = ExternalWriteFailure("500", operation="send message")

    outcome = await dispatcher.dispatch(classify(user_message_factory()))

    assert outcome.escalated
    assert store.is_escalated("conv-1")


async def test_failure_without_human_agent_stays_silent(
    store, mock_freshchat, mock_generator, settings, user_message_factory
):
    settings = settings.model_copy(update={"human_agent_id": None})
    dispatcher = WebhookDispatcher(store, mock_freshchat, mock_generator, settings)
    mock_generator.respond.side_effect = GenerationTimeout("slow")

    outcome = await dispatcher.dispatch(classify(user_message_factory()))

    assert not outcome.escalated
    mock_freshchat.send_message.assert_not_awaited()
    assert not store.is_escalated("conv-1")


async def test_assignment_to_human_marks_escalated(dispatcher, store, assignment_factory):
    await dispatcher.dispatch(classify(assignment_factory(new_agent_id=HUMAN_AGENT_ID)))

    assert store.is_escalated("conv-1")


async def test_assignment_back_to_bot_welcomes(dispatcher, mock_freshchat, store, assignment_factory):
    store.set_state("conv-1", OwnershipState.WITH_HUMAN)

    await dispatcher.dispatch(
        classify(assignment_factory(new_agent_id=BOT_AGENT_ID, old_agent_id=HUMAN_AGENT_ID))
    )

    assert not store.is_escalated("conv-1")
    mock_freshchat.assign_conversation.assert_not_awaited()
    mock_freshchat.send_message.assert_awaited_once_with("conv-1", "I'm back!", actor_id=BOT_AGENT_ID)


async def test_assignment_to_bot_without_previous_assignee_welcomes(dispatcher, mock_freshchat, assignment_factory):
    await dispatcher.dispatch(classify(assignment_factory(new_agent_id=BOT_AGENT_ID, old_agent_id=None)))

    mock_freshchat.assign_conversation.assert_not_awaited()
    mock_freshchat.send_message.assert_awaited_once_with("conv-1", "I'm back!", actor_id=BOT_AGENT_ID)


async def test_plain_field_assignment_to_bot_welcomes(dispatcher, mock_freshchat, store):
    body = {
        "action": "conversation_assignment",
        "data": {"conversation": {"id": "conv-9", "assigned_agent_id": BOT_AGENT_ID}},
    }

    await dispatcher.dispatch(classify(body))

    assert not store.is_escalated("conv-9")
    mock_freshchat.send_message.assert_awaited_once_with("conv-9", "I'm back!", actor_id=BOT_AGENT_ID)


async def test_agent_message_ignored_unless_escalated(dispatcher, mock_freshchat, agent_message_factory):
    await dispatcher.dispatch(classify(agent_message_factory(text="closing this conversation")))

    mock_freshchat.assign_conversation.assert_not_awaited()
    mock_freshchat.send_message.assert_not_awaited()


async def test_bot_own_messages_are_ignored(dispatcher, mock_freshchat, store, agent_message_factory):
    store.set_state("conv-1", OwnershipState.WITH_HUMAN)

    await dispatcher.dispatch(classify(agent_message_factory(text="returning to bot", agent_id=BOT_AGENT_ID)))

    assert store.is_escalated("conv-1")
    mock_freshchat.send_message.assert_not_awaited()


async def test_duplicate_message_is_dropped(dispatcher, mock_generator, user_message_factory):
    body = user_message_factory(message_id="m-1")

    await dispatcher.dispatch(classify(body))
    assert await dispatcher.dispatch(classify(body)) is None

    mock_generator.respond.assert_awaited_once()


async def test_unclassified_and_missing_conversation_ignored(dispatcher, mock_freshchat, user_message_factory):
    assert await dispatcher.dispatch(classify({"action": "conversation_resolution"})) is None
    assert await dispatcher.dispatch(classify(user_message_factory(conversation_id=None))) is None

    mock_freshchat.get_assignee.assert_not_awaited()


async def test_concurrent_messages_are_serialized(dispatcher, mock_generator, store, user_message_factory):
    seen_handles = []

    async def respond(handle, text):
        seen_handles.append(handle)
        await asyncio.sleep(0.01)
        return GenerationResult(reply_text=f"re: {text}", session_handle=handle or f"thread-{len(seen_handles)}")

    mock_generator.respond.side_effect = respond

    await asyncio.gather(
        dispatcher.dispatch(classify(user_message_factory(text="one", message_id="m-1"))),
        dispatcher.dispatch(classify(user_message_factory(text="two", message_id="m-2"))),
    )

    assert seen_handles == [None, "thread-1"]
    assert store.get("conv-1").session_handle == "thread-1"
