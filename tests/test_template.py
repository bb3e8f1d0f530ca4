import logging

import pytest

from toolbox.services.template import TemplateError, evaluate, render, render_object

CONTEXT = {"keyword": "周杰伦", "page": 3, "limit": 20, "pageSize": 20}


@pytest.mark.parametrize(
    ("template", "expected"),
    [
        ("{{keyword}}", "周杰伦"),
        ("{{ keyword }}", "周杰伦"),
        ("offset={{(page - 1) * limit}}", "offset=40"),
        ("{{pageSize}}", "20"),
        ("{{limit / 2}}", "10"),
        ("{{limit / 3}}", "6.666666666666667"),
        ("{{page // 2}}", "1"),
        ("{{Math.floor(limit / 3)}}", "6"),
        ("{{Math.ceil(limit / 3)}}", "7"),
        ("{{Math.round(2.5)}}", "3"),
        ("{{encodeURIComponent(keyword)}}", "%E5%91%A8%E6%9D%B0%E4%BC%A6"),
        ("{{'p' + page}}", "p3"),
        ("{{page + limit}}", "23"),
        ("{{String(page > 1)}}", "true"),
        ("{{parseInt('12abc') + 1}}", "13"),
        ("{{Number('2.0') * page}}", "6"),
        ("{{'next' if page > 1 else 'first'}}", "next"),
        ("{{page > 5 and 'late' or 'early'}}", "early"),
        ("{{-page}}", "-3"),
        ("{{max(page, 10)}}", "10"),
        ("{{null}}", "null"),
        ("{{keyword}}-{{page}}", "周杰伦-3"),
        ("no placeholders", "no placeholders"),
    ],
)
def test_render_evaluates_expressions(template: str, expected: str) -> None:
    assert render(template, CONTEXT) == expected


@pytest.mark.parametrize(
    "template",
    [
        "{{page +}}",
        "{{unknown}}",
        "{{__import__('os').system('id')}}",
        "{{keyword.upper()}}",
        "{{keyword[0]}}",
        "{{[1, 2]}}",
        "{{lambda: 1}}",
        "{{open('/etc/passwd')}}",
        "{{1 / 0}}",
        "{{2 ** 1000}}",
        "{{keyword * 2}}",
        "{{round(page, ndigits=1)}}",
        "{{Math.sqrt(page)}}",
        "{{" + "-" * 800 + "1}}",
        "{{" + "+".join(["1"] * 200) + "}}",
        "{{(9 ** 60) ** 60}}",
        "{{" + " * ".join(["99999999999"] * 20) + "}}",
    ],
)
def test_render_leaves_bad_placeholders_verbatim(template: str) -> None:
    assert render(template, CONTEXT) == template


def test_render_keeps_good_placeholders_next_to_bad_ones(caplog) -> None:
    with caplog.at_level(logging.ERROR):
        result = render("{{keyword}}/{{nope}}/{{page}}", CONTEXT)

    assert result == "周杰伦/{{nope}}/3"
    assert "模板解析失败：nope" in caplog.text


def test_evaluate_raises_template_error() -> None:
    with pytest.raises(TemplateError):
        evaluate("page.__class__", CONTEXT)


def test_render_object_walks_nested_containers() -> None:
    template = {
        "req": {
            "module": "music.search",
            "param": {"query": "{{keyword}}", "page_num": "{{page}}", "num": 20},
            "tags": ["{{keyword}}", None, True, {"deep": "{{limit * 2}}"}],
        }
    }

    assert render_object(template, CONTEXT) == {
        "req": {
            "module": "music.search",
            "param": {"query": "周杰伦", "page_num": "3", "num": 20},
            "tags": ["周杰伦", None, True, {"deep": "40"}],
        }
    }


def test_render_object_passes_scalars_through() -> None:
    assert render_object(42, CONTEXT) == 42
    assert render_object(None, CONTEXT) is None
    assert render_object(1.5, CONTEXT) == 1.5


def test_evaluate_rejects_deeply_nested_expressions() -> None:
    with pytest.raises(TemplateError):
        evaluate("-" * 800 + "1", CONTEXT)
    with pytest.raises(TemplateError):
        evaluate(" + ".join(["page"] * 100), CONTEXT)


def test_evaluate_rejects_huge_numbers_but_keeps_large_ones() -> None:
    assert evaluate("2 ** 64", CONTEXT) == 2 ** 64
    assert evaluate(" + ".join(["page"] * 50), CONTEXT) == 150
    with pytest.raises(TemplateError, match="too large"):
        evaluate("(9 ** 60) ** 60", CONTEXT)
    with pytest.raises(TemplateError, match="too large"):
        evaluate(" * ".join(["99999999999"] * 20), CONTEXT)
