import pytest

from algolobby.log_display import (
    Color,
    Interaction,
    LogDisplay,
    LogDisplaySettings,
    Message,
    MessageLevel,
    interaction_based,
    into_color,
)


def texts(messages):
    return [m.text if m is not None else None for m in messages]


def make_display(max_lines=3, **kwargs):
    return LogDisplay(LogDisplaySettings(max_lines=max_lines, **kwargs))


def test_color_from_u8_extremes():
    assert Color.from_rgb_u8(255, 255, 255) == Color.WHITE
    assert Color.from_rgba_u8(0, 0, 0, 255) == Color.BLACK


def test_color_from_u8_rejects_out_of_range():
    with pytest.raises(ValueError):
        Color.from_rgb_u8(256, 0, 0)
    with pytest.raises(TypeError):
        Color.from_rgb_u8(1.5, 0, 0)


def test_into_color_accepts_triples_quads_and_colors():
    assert into_color([255, 255, 255]) == Color.WHITE
    assert into_color((43, 43, 43, 240)) == Color.from_rgba_u8(43, 43, 43, 240)
    assert into_color(Color.BLACK) is Color.BLACK


def test_into_color_rejects_wrong_length():
    with pytest.raises(ValueError):
        into_color((1, 2))
    with pytest.raises(TypeError):
        into_color(5)


def test_interaction_based_selects_by_state():
    select = interaction_based("p", "h", "n")
    assert select(Interaction.PRESSED) == "p"
    assert select(Interaction.HOVERED) == "h"
    assert select(Interaction.NONE) == "n"


def test_message_constructors_levels_and_colors():
    assert Message.error("x").color == Color(1.0, 0.0, 0.0)
    assert Message.success("x").color == Color(0.0, 1.0, 0.0)
    assert Message.warn("x").level is MessageLevel.WARN
    assert Message.info("x").color == Color.WHITE
    assert Message.debug("x").color == Color.from_rgb_u8(0x77, 0xCD, 0xFF)


def test_header_right_aligns_level():
    assert Message.success("x").header() == "SUCCESS"
    assert Message.info("x").header() == "   INFO"
    assert Message("x").header() == " " * 7


def test_normalized_splits_lines_and_keeps_style():
    parts = list(Message.warn("a\r\nb\n").normalized())
    assert texts(parts) == ["a", "b"]
    assert all(p.level is MessageLevel.WARN for p in parts)
    assert all(p.color == Message.warn("").color for p in parts)


def test_normalized_empty_and_blank_lines():
    assert list(Message("").normalized()) == []
    assert texts(Message("a\n\nb").normalized()) == ["a", "", "b"]


def test_push_is_applied_on_update():
    display = make_display()
    display.push(Message.info("one\ntwo"))
    assert display.logs == ()
    assert display.update() is True
    assert texts(display.logs) == ["one", "two"]
    assert texts(display.lines) == ["one", "two", None]


def test_update_without_changes_returns_false():
    display = make_display()
    assert display.update() is False
    display.push(Message("a"))
    display.update()
    assert display.update() is False


def test_shows_most_recent_lines():
    display = make_display().with_messages(Message(str(i)) for i in range(5))
    display.update()
    assert texts(display.lines) == ["2", "3", "4"]


def test_scroll_back_and_forward():
    display = make_display().with_messages(Message(str(i)) for i in range(5))
    display.update()
    display.queue_scroll(1)
    assert display.update() is True
    assert texts(display.lines) == ["1", "2", "3"]
    display.queue_scroll(-5)
    assert display.scroll == 0
    display.update()
    assert texts(display.lines) == ["2", "3", "4"]


def test_scroll_is_clamped_to_history():
    display = make_display().with_messages(Message(str(i)) for i in range(5))
    display.update()
    display.queue_scroll(100)
    assert display.scroll == len(display.logs) - display.settings.max_lines
    display.update()
    assert texts(display.lines) == ["0", "1", "2"]


def test_scroll_ignored_when_everything_fits():
    display = make_display().with_message(Message("a"))
    display.update()
    display.queue_scroll(2)
    assert display.scroll == 0


def test_clear_then_push_blanks_stale_lines():
    display = make_display().with_messages([Message("a"), Message("b")])
    display.update()
    display.clear()
    display.push(Message("x"))
    display.update()
    assert texts(display.logs) == ["x"]
    assert texts(display.lines) == ["x", "", None]


def test_second_clear_drops_queued_pushes():
    display = make_display().with_message(Message("a"))
    display.update()
    display.clear()
    display.push(Message("b"))
    display.clear()
    display.update()
    assert display.logs == ()


def test_debug_messages_can_be_hidden():
    display = make_display(show_debug=False)
    display.extend([Message.debug("hidden"), Message.info("shown")])
    display.update()
    assert texts(display.logs) == ["shown"]


def test_dump_lists_messages_with_headers():
    display = make_display().with_message(Message.success("done"))
    display.update()
    lines = display.dump()
    assert lines[0] == "===LogDisplay==="
    assert lines[1] == "SUCCESS done"
    assert lines[-1] == "================"


def test_negative_max_lines_rejected():
    with pytest.raises(ValueError):
        LogDisplaySettings(max_lines=-1)