"""Shared test fixtures and configuration."""
import os
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Set test environment variables before importing app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("ELEVENLABS_API_KEY", "")

from receptionist.services.call_session.accumulator import FlushPolicy
from receptionist.services.call_session.manager import CallSessionManager
from receptionist.services.call_session.store import ConversationMemoryStore
from receptionist.services.call_session.streamer import OutboundAudioStreamer
from receptionist.services.reply.base import Reply
from receptionist.services.reply.business import BusinessRepository
from tests.helpers import FRAME_SIZE, FakeClock, FakeWebSocket


@pytest.fixture
def fake_websocket():
    return FakeWebSocket()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def test_business_path():
    """Return path to the test business data directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def test_business_repository(test_business_path):
    return BusinessRepository(data_dir=str(test_business_path))


@pytest.fixture
def mock_stt():
    """Mock speech-to-text service."""
    stt = Mock()
    stt.transcribe = AsyncMock(return_value="What are your hours?")
    return stt


@pytest.fixture
def mock_reply_generator():
    """Mock reply generator."""
    generator = Mock()
    generator.generate_reply = AsyncMock(
        return_value=Reply(text="We're open eleven to eleven.", label="hours")
    )
    return generator


@pytest.fixture
def mock_synthesizer():
    """Mock synthesizer returning 20ms of 8kHz PCM silence."""
    synthesizer = Mock()
    synthesizer.synthesize = AsyncMock(return_value=b"\x00\x00" * FRAME_SIZE)
    return synthesizer


@pytest.fixture
def streamer():
    return OutboundAudioStreamer(chunk_size=FRAME_SIZE, interval=0)


@pytest.fixture
async def call_manager(mock_stt, mock_reply_generator, mock_synthesizer, streamer, fake_clock):
    """Call session manager with mocked backends and a short grace period."""
    manager = CallSessionManager(
        stt=mock_stt,
        reply_generator=mock_reply_generator,
        synthesizer=mock_synthesizer,
        streamer=streamer,
        flush_policy=FlushPolicy.aggressive(),
        memories=ConversationMemoryStore(grace_period=0.05),
        greeting_text="Hello! Welcome to Pizza Karachi. How can I help you today?",
        clock=fake_clock,
    )
    yield manager
    await manager.shutdown()


@pytest.fixture
def mock_openai():
    """Mock OpenAI API client."""
    mock_client = Mock()
    mock_completion = Mock()
    mock_completion.choices = [
        Mock(
            message=Mock(
                content='{"response": "We are open until eleven tonight.", "intent": "hours"}'
            )
        )
    ]
    mock_client.chat.completions.create = AsyncMock(return_value=mock_completion)
    mock_client.audio.transcriptions.create = AsyncMock(return_value=Mock(text="  hello there  "))
    mock_client.audio.speech.create = AsyncMock(return_value=Mock(content=b"\x10\x00" * 240))
    return mock_client
