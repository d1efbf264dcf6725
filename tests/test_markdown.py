from portfolio.projects.markdown import (
    estimate_token_count,
    extract_image_references,
    extract_table_of_contents,
    fits_in_context_window,
    rewrite_paths,
)


def test_extract_image_references_in_document_order():
    assert extract_image_references("![a](x.png) text ![b](y/z.png)") == ["x.png", "y/z.png"]


def test_extract_image_references_keeps_duplicates_and_ignores_links():
    text = "![a](x.png)\n[not an image](page.html)\n![again](x.png)"
    assert extract_image_references(text) == ["x.png", "x.png"]


def test_rewrite_paths_replaces_reference_and_keeps_alt():
    assert rewrite_paths("![a](x.png)", {"x.png": "https://cdn/x.png"}) == "![a](https://cdn/x.png)"


def test_rewrite_paths_replaces_every_occurrence():
    text = "![one](x.png) and ![two](x.png)"
    assert rewrite_paths(text, {"x.png": "u"}) == "![one](u) and ![two](u)"


def test_rewrite_paths_leaves_unknown_keys_and_paths_alone():
    text = "![a](x.png) ![b](other.png)"
    assert rewrite_paths(text, {"missing.png": "https://cdn/m.png"}) == text
    assert rewrite_paths(text, {"x.png": "u"}) == "![a](u) ![b](other.png)"


def test_rewrite_paths_treats_keys_literally():
    # "." must not match any character, "+" must not repeat
    text = "![a](xapng) ![b](fig+1.png)"
    result = rewrite_paths(text, {"x.png": "WRONG", "fig+1.png": "https://cdn/fig.png"})
    assert result == "![a](xapng) ![b](https://cdn/fig.png)"


def test_rewrite_paths_does_not_touch_plain_links():
    text = "[download](x.png)"
    assert rewrite_paths(text, {"x.png": "u"}) == text


def test_rewrite_paths_with_backslash_in_url():
    assert rewrite_paths("![a](x.png)", {"x.png": r"C:\img\1.png"}) == r"![a](C:\img\1.png)"


def test_table_of_contents():
    toc = extract_table_of_contents("# Intro\ntext\n## Data & Methods\n#not a heading")
    assert toc == [
        {"id": "intro", "level": 1, "text": "Intro"},
        {"id": "data-methods", "level": 2, "text": "Data & Methods"},
    ]


def test_token_estimates():
    assert estimate_token_count("abcd" * 10) == 10
    assert estimate_token_count("abcde") == 2
    assert fits_in_context_window("x" * 400, image_count=5, max_tokens=10_000)
    assert not fits_in_context_window("x" * 400, image_count=10, max_tokens=10_000)
