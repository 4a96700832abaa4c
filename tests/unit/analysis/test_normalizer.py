"""Tests for input normalization."""
from forge.analysis.normalizer import clean_text, detect_language, normalize


def test_clean_text_collapses_whitespace():
    assert clean_text("  hello   world \r\n\n\n\nnext  ") == "hello world\n\nnext"


def test_code_blocks_extracted_and_preserved():
    """Test fenced code keeps its internal whitespace."""
    result = normalize("fix this\n```js\nconst  a = 1;\n```")

    assert result.code_blocks == ("const  a = 1;",)
    assert result.has_code_blocks
    assert "const  a = 1;" in result.cleaned
    assert result.normalized == "fix this [CODE_BLOCK_0]"


def test_unclosed_fence_runs_to_end():
    result = normalize("look ```python\nprint(1)")

    assert result.code_blocks == ("print(1)",)


def test_normalize_is_idempotent():
    text = "  Create   a card\n\n\n\nwith ```html\n<div>  x</div>\n```  please "
    first = normalize(text)
    second = normalize(first.cleaned)

    assert second.cleaned == first.cleaned
    assert second.code_blocks == first.code_blocks
    assert normalize(text) == first


def test_language_detection():
    assert detect_language("tolong buat tombol yang bagus") == "id"
    assert detect_language("please create a button") == "en"
    assert detect_language("buat a button please") == "mixed"
    assert detect_language("") == "en"


def test_metadata_extraction():
    result = normalize("create a page for @alice from https://example.com/docs now")

    assert result.urls == ("https://example.com/docs",)
    assert result.mentions == ("alice",)
    assert result.commands == ("create",)
    assert result.word_count == 8


def test_questions_extracted():
    result = normalize("What is React? Explain it.")

    assert result.questions == ("What is React?",)


def test_images_flag():
    assert normalize("see attached", images=["data:image/png;base64,AAA"]).has_images
    assert not normalize("see attached").has_images


def test_single_line_fence_keeps_body():
    result = normalize("fix ```const x = 1;``` please")

    assert result.code_blocks == ("const x = 1;",)
    assert result.normalized == "fix [CODE_BLOCK_0] please"


def test_several_inline_fences():
    result = normalize("compare ```a()``` and ```b()```")

    assert result.code_blocks == ("a()", "b()")
    assert result.normalized == "compare [CODE_BLOCK_0] and [CODE_BLOCK_1]"
