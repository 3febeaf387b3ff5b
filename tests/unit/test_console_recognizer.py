"""
Unit tests for the typed-text recognizer used by the CLI.
"""

import io

from app.study_voice import ConsoleRecognizer


async def test_lines_accumulate_into_utterance():
    recognizer = ConsoleRecognizer(stream=io.StringIO(""))
    heard = []
    await recognizer.start(heard.append, lambda error: None)

    recognizer.feed("hey")
    recognizer.feed("  luna \n")
    recognizer.feed("   ")

    assert heard == ["hey", "hey luna"]
    await recognizer.stop()


async def test_stop_ends_utterance():
    recognizer = ConsoleRecognizer(stream=io.StringIO(""))
    heard = []
    await recognizer.start(heard.append, lambda error: None)
    recognizer.feed("thank")
    await recognizer.stop()

    recognizer.feed("ignored")
    await recognizer.start(heard.append, lambda error: None)
    recognizer.feed("you")

    assert heard == ["thank", "you"]


async def test_reads_lines_from_stream(wait_until):
    recognizer = ConsoleRecognizer(stream=io.StringIO("high\nlight\n"))
    heard = []

    await recognizer.start(heard.append, lambda error: None)
    await wait_until(lambda: len(heard) == 2)

    assert heard == ["high", "high light"]
