"""
Tests for skeleton assembly.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def frag(text, x, y, width=10.0, font_size=10.0, font_name="Arial"):
    from template_recon.geometry import TextFragment
    return TextFragment(text, x=x, y=y, width=width, font_size=font_size, font_name=font_name)


def page(number, *fragments, width=600):
    from template_recon.geometry import PageTextLayer
    return PageTextLayer(number, width, 800, list(fragments))


@pytest.fixture
def invoice_page():
    return page(
        1,
        frag("Invoice", 8, 10, width=20, font_size=14),
        frag("No.", 70, 10.2),
        frag("12345", 82, 10.3),
    )


class TestHelpers:
    """Test spacing, emphasis and escaping helpers."""

    @pytest.mark.parametrize("gap,tier", [
        (7, "large"),
        (6, "medium"),
        (4.5, "medium"),
        (4, "small"),
        (2.6, "small"),
        (2.5, "minimal"),
        (0, "minimal"),
        (-3, "minimal"),
    ])
    def test_spacing_tier(self, gap, tier):
        from template_recon.assembler import spacing_tier

        assert spacing_tier(gap).value == tier

    def test_escape_html(self):
        from template_recon.assembler import escape_html

        assert escape_html("a < b > c") == "a &lt; b &gt; c"
        assert escape_html('say "hi"') == 'say "hi"'

    def test_escape_skipped_with_ampersand(self):
        """Text with an ampersand is passed through untouched."""
        from template_recon.assembler import escape_html

        assert escape_html("AT&T <x>") == "AT&T <x>"

    def test_round_half_up(self):
        from template_recon.assembler import round_half_up

        assert round_half_up(14.5) == 15
        assert round_half_up(15.5) == 16
        assert round_half_up(14.4) == 14

    def test_bold_rules(self):
        from template_recon.assembler import is_bold_line
        from template_recon.geometry import TextLine

        assert is_bold_line(TextLine.from_fragments([frag("a", 1, 1, font_size=12.6)]))
        assert is_bold_line(TextLine.from_fragments([frag("a", 1, 1, font_name="Helvetica-BOLD")]))
        assert is_bold_line(TextLine.from_fragments([frag("a", 1, 1, font_size=13.5), frag("b", 20, 1, font_size=8)]))
        assert not is_bold_line(TextLine.from_fragments([frag("a", 1, 1, font_size=12.5)]))


class TestSkeletonAssembler:
    """Test HTML skeleton generation."""

    def test_empty_page(self):
        """A page without fragments yields wrapper and signature only."""
        from template_recon.assembler import build_skeleton

        html = build_skeleton([page(1)], [])
        lines = html.split("\n")

        assert len(lines) == 5
        assert lines[0].startswith('<div style="font-family:')
        assert "<p" not in html
        assert lines[-1] == "</div>"
        assert "border-bottom:1px solid #333;width:200px;height:40px;" in lines[2]

    def test_invoice_split_row(self, invoice_page):
        """Header with far-apart fragments becomes a two-cell row."""
        from template_recon.assembler import build_skeleton
        from template_recon.geometry import ExtractedField

        html = build_skeleton([invoice_page], [ExtractedField("Numero Factura", "12345", 0.9)])

        assert (
            '  <div style="display:flex;justify-content:space-between;'
            'align-items:baseline;margin-top:2px;font-weight:bold;">'
        ) in html
        assert "    <span>Invoice</span>" in html
        assert "    <span>No. {{numero_factura}}</span>" in html
        assert "12345" not in html

    def test_deterministic(self, invoice_page):
        from template_recon.assembler import SkeletonAssembler
        from template_recon.geometry import ExtractedField

        fields = [ExtractedField("Numero Factura", "12345")]
        assembler = SkeletonAssembler()

        assert assembler.build([invoice_page], fields) == assembler.build([invoice_page], fields)

    def test_pages_in_number_order(self):
        """Pages are emitted by page number with breaks between them."""
        from template_recon.assembler import build_skeleton

        html = build_skeleton(
            [page(3, frag("Third", 8, 10)), page(1, frag("First", 8, 10)), page(2)],
            []
        )

        assert html.index("First") < html.index("Third")
        assert html.count("page-break-before:always;") == 2

    def test_single_page_has_no_break(self, invoice_page):
        from template_recon.assembler import build_skeleton

        assert "page-break-before" not in build_skeleton([invoice_page], [])

    def test_centered_bold_title(self):
        """Bold font names produce bold paragraphs; centered lines get auto margins."""
        from template_recon.assembler import build_skeleton

        html = build_skeleton([page(1, frag("CONTRATO", 40, 5, width=20, font_name="Arial-Bold"))], [])

        assert (
            '  <p style="text-align:center;margin-top:2px;font-weight:bold;'
            'margin-left:auto;margin-right:auto;">CONTRATO</p>'
        ) in html

    def test_large_font_size(self):
        """Large lines carry a rounded point size."""
        from template_recon.assembler import build_skeleton

        html = build_skeleton([page(1, frag("Heading", 8, 5, width=40, font_size=14.5))], [])

        assert '<p style="text-align:left;margin-top:2px;font-weight:bold;font-size:15pt;">Heading</p>' in html

    def test_vertical_gap_spacing(self):
        """Gaps between consecutive lines map to spacing tiers."""
        from template_recon.assembler import build_skeleton

        html = build_skeleton([
            page(
                1,
                frag("one", 8, 10, width=40, font_size=3),
                frag("two", 8, 20, width=40, font_size=3),
                frag("three", 8, 25, width=40, font_size=3),
            )
        ], [])

        assert '<p style="text-align:left;margin-top:2px;">one</p>' in html
        assert '<p style="text-align:left;margin-top:28px;">two</p>' in html
        assert '<p style="text-align:left;margin-top:20px;">three</p>' in html

    def test_escapes_text(self):
        from template_recon.assembler import build_skeleton

        html = build_skeleton([page(1, frag("a < b", 8, 5, width=40))], [])

        assert ">a &lt; b</p>" in html

    def test_split_cells_escaped(self):
        from template_recon.assembler import build_skeleton

        html = build_skeleton([page(1, frag("<left>", 8, 5), frag("right", 80, 5))], [])

        assert "<span>&lt;left&gt;</span>" in html

    def test_custom_theme(self, invoice_page):
        """Theme directives are injected once into the wrapper."""
        from template_recon.assembler import SkeletonAssembler
        from template_recon.config import ThemeConfig

        theme = ThemeConfig(font_family="Arial,sans-serif", max_width="800px")
        html = SkeletonAssembler(theme=theme).build([invoice_page], [])

        assert html.startswith('<div style="font-family:Arial,sans-serif;max-width:800px;')
