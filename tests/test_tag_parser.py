"""调用标签解析测试：验证首个标签识别、空白容忍与消息正文提取。"""

from agentskills.domain.enums import ArgumentKind
from agentskills.domain.models import JsonArgs, KeyValueArgs
from agentskills.domain.protocol.parser import extract_first_call, extract_message_text


def test_extract_json_call_embedded_in_prose() -> None:
    """自由文本中的 JSON 参数标签应被识别。"""
    request = extract_first_call('Sure. [CALL: weather({"city":"Tokyo"})] one moment')
    assert request is not None
    assert request.skill_name == "weather"
    assert request.raw_args == '{"city":"Tokyo"}'
    assert request.arguments == JsonArgs({"city": "Tokyo"})
    assert request.raw_tag == '[CALL: weather({"city":"Tokyo"})]'


def test_extract_tolerates_spacing_and_key_values() -> None:
    request = extract_first_call("[ CALL : weather ( city=Tokyo, days=3 ) ]")
    assert request is not None
    assert request.skill_name == "weather"
    assert request.arguments == KeyValueArgs({"city": "Tokyo", "days": 3})


def test_extract_without_parentheses_yields_empty_mapping() -> None:
    request = extract_first_call("**[CALL: ping]**")
    assert request is not None
    assert request.skill_name == "ping"
    assert request.raw_args == ""
    assert request.arguments.kind is ArgumentKind.key_value
    assert request.arguments.as_python() == {}


def test_only_leftmost_tag_counts() -> None:
    """多个标签时只取最左侧一个。"""
    request = extract_first_call("[CALL: first(a=1)] then [CALL: second(b=2)]")
    assert request is not None
    assert request.skill_name == "first"
    assert request.arguments.as_python() == {"a": 1}


def test_multiline_arguments_and_dotted_names() -> None:
    text = '```\n[CALL: world.book-v2({\n  "entry": "x"\n})]\n```'
    request = extract_first_call(text)
    assert request is not None
    assert request.skill_name == "world.book-v2"
    assert request.arguments.as_python() == {"entry": "x"}


def test_no_tag_or_invalid_input_returns_none() -> None:
    assert extract_first_call("just chatting") is None
    assert extract_first_call("[CALL: bad name!]") is None
    assert extract_first_call(None) is None
    assert extract_first_call(12345) is None


def test_each_request_gets_unique_call_id() -> None:
    first = extract_first_call("[CALL: ping]")
    second = extract_first_call("[CALL: ping]")
    assert first is not None and second is not None
    assert first.call_id != second.call_id


def test_extract_message_text_probes_known_fields() -> None:
    """宿主事件可能以 mes/message/text/content 携带正文。"""
    assert extract_message_text("plain") == "plain"
    assert extract_message_text({"mes": "a"}) == "a"
    assert extract_message_text({"mes": "", "content": "b"}) == "b"
    assert extract_message_text({"text": 3, "message": "c"}) == "c"
    assert extract_message_text({"other": "x"}) == ""
    assert extract_message_text(None) == ""
