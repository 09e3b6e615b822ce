import pytest

from autohelp_core.domain.models import ExceptionRecord, SourceClass, StackFrame
from autohelp_core.parsing.stacktrace import parse, parse_frame


CLASS_SOURCE = """// Main.java
package com.foo;

import java.util.List;

class Helper {
}

public class Main {
    public static void main(String[] args) {
        String s = null;
        System.out.println(s.length());
    }
}
"""


def test_parse_plain_text_has_no_exceptions():
    result = parse("hello, my plugin does not work. I got a NullPointerException somewhere")
    assert result.exceptions == []
    assert result.classes == []
    assert not result


def test_parse_empty_and_none():
    assert parse("").evidence == []
    assert parse(None).evidence == []


def test_parse_scenario_a():
    result = parse("NullPointerException: null\n  at com.foo.Bar.baz(Bar.java:42)")
    assert len(result.exceptions) == 1
    record = result.exceptions[0]
    assert record.exception_name == "NullPointerException"
    assert record.message == "null"
    assert record.frames == (StackFrame(package="com.foo", method="baz", class_name="Bar", line_number=42),)
    assert record.cause is None


@pytest.mark.parametrize(
    "header,name,message",
    [
        ("java.lang.Exception: boom", "java.lang.Exception", "boom"),
        ('Exception in thread "main" java.lang.Error: bad', "java.lang.Error", "bad"),
        ("java.lang.Throwable", "java.lang.Throwable", ""),
        ("Exception: boom", "Exception", "boom"),
    ],
)
def test_parse_base_throwable_types(header, name, message):
    result = parse(f"{header}\n\tat com.foo.Bar.baz(Bar.java:3)")
    assert len(result.exceptions) == 1
    record = result.exceptions[0]
    assert record.exception_name == name
    assert record.message == message
    assert record.frames[0].line_number == 3


def test_parse_thread_preamble_and_single_cause():
    text = (
        'Exception in thread "main" java.lang.RuntimeException: wrapper\n'
        "\tat com.foo.Main.run(Main.java:10)\n"
        "\tat com.foo.Main.main(Main.java:5)\n"
        "Caused by: java.lang.IllegalStateException: boom\n"
        "\tat com.foo.Service.call(Service.java:20)\n"
        "\t... 2 more\n"
    )
    result = parse(text)
    assert len(result.exceptions) == 1
    record = result.exceptions[0]
    assert record.exception_name == "java.lang.RuntimeException"
    assert record.message == "wrapper"
    assert [f.line_number for f in record.frames] == [10, 5]
    assert record.cause is not None
    assert record.cause.exception_name == "java.lang.IllegalStateException"
    assert record.cause.message == "boom"
    assert record.cause.frames[0].class_name == "Service"
    assert record.collapsed_causes == 0


def test_parse_collapses_deeper_causes():
    text = (
        "java.lang.RuntimeException: a\n"
        "\tat com.foo.A.a(A.java:1)\n"
        "Caused by: java.lang.IllegalStateException: b\n"
        "\tat com.foo.B.b(B.java:2)\n"
        "Caused by: java.io.IOException: c\n"
        "\tat com.foo.C.c(C.java:3)\n"
    )
    result = parse(text)
    assert len(result.exceptions) == 1
    record = result.exceptions[0]
    assert record.cause.exception_name == "java.lang.IllegalStateException"
    assert record.cause.cause is None
    assert record.collapsed_causes == 1


def test_parse_log_prefix_and_continuation_line():
    text = (
        "[12:00:01 ERROR]: java.lang.IllegalArgumentException: first line\n"
        "second line\n"
        "\tat com.foo.Bar.baz(Bar.java:3)\n"
    )
    record = parse(text).exceptions[0]
    assert record.exception_name == "java.lang.IllegalArgumentException"
    assert record.message == "first line\nsecond line"


def test_parse_skips_malformed_frames():
    text = (
        "java.lang.NullPointerException\n"
        "\tat sun.reflect.NativeMethodAccessorImpl.invoke0(Native Method)\n"
        "\tat com.foo.Bar.baz(Bar.java:42)\n"
        "\tat com.foo.Baz.qux(Unknown Source)\n"
    )
    record = parse(text).exceptions[0]
    assert record.message == ""
    assert [f.class_name for f in record.frames] == ["Bar"]


def test_parse_frame_strips_module_prefixes():
    frame = parse_frame("\tat java.base/java.lang.Thread.run(Thread.java:833)")
    assert frame == StackFrame(package="java.lang", method="run", class_name="Thread", line_number=833)
    frame = parse_frame("\tat app//com.foo.Main.<init>(Main.kt:7)")
    assert frame.package == "com.foo"
    assert frame.method == "<init>"
    assert parse_frame("\tat com.foo.Main.main(Main.java)") is None


def test_parse_two_separate_traces():
    text = (
        "java.lang.IllegalStateException: one\n"
        "\tat com.foo.A.a(A.java:1)\n"
        "some chatter in between\n"
        "java.lang.ClassCastException: two\n"
        "\tat com.foo.B.b(B.java:2)\n"
    )
    names = [r.exception_name for r in parse(text).exceptions]
    assert names == ["java.lang.IllegalStateException", "java.lang.ClassCastException"]


def test_parse_class_prefers_public_type_and_keeps_header():
    result = parse(CLASS_SOURCE)
    assert result.exceptions == []
    assert len(result.classes) == 1
    clazz = result.classes[0]
    assert clazz.package == "com.foo"
    assert clazz.name == "Main"
    lines = clazz.raw_content.splitlines()
    assert lines[0] == "// Main.java"
    assert lines[11].strip() == "System.out.println(s.length());"


def test_parse_splits_multiple_package_declarations():
    text = (
        "package com.foo;\n\npublic class A {\n}\n"
        "package com.bar;\n\npublic interface B {\n}\n"
    )
    classes = parse(text).classes
    assert [(c.package, c.name) for c in classes] == [("com.foo", "A"), ("com.bar", "B")]


def test_parse_ignores_package_without_type():
    assert parse("package com.foo;\n\nnothing here").classes == []


def test_evidence_keeps_textual_order():
    text = "java.lang.NullPointerException\n\tat com.foo.Main.main(Main.java:12)\n\n" + CLASS_SOURCE
    evidence = parse(text).evidence
    assert isinstance(evidence[0], ExceptionRecord)
    assert isinstance(evidence[1], SourceClass)
