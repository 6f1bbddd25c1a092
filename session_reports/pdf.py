from __future__ import annotations  # Styled PDF rendering for completed interview sessions

import os
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from interview_session.models import InterviewSession, SessionStatus, Turn


DEJAVU_SANS = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"  # System font
DEJAVU_SANS_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"  # System font

ACCENT = (45, 115, 245)  # Palette accent
TEXT = (34, 34, 34)  # Primary text color
MUTED = (100, 100, 100)  # Secondary text color
RULE = (230, 230, 230)  # Divider color
SOFT_ACCENT_BG = (243, 248, 255)  # Highlight background

ROLE_LABELS = {"assistant": "Interviewer", "user": "Candidate", "system": "Note"}


class ReportNotAvailable(ValueError):  # Session has nothing to report yet
    pass


def _format_datetime(value: Optional[datetime]) -> str:  # Format timestamp for display
    if not value:
        return "-"
    return value.strftime("%d %b %Y, %I:%M %p UTC")


def _format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "-"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs:02d}s"


def _effective_width(pdf: FPDF) -> float:  # Compute effective page width
    return float(pdf.w) - float(pdf.l_margin) - float(pdf.r_margin)


def _section_title(pdf: "ReportPDF", title: str) -> None:  # Render styled section title
    pdf.set_text_color(*TEXT)
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_bold, "B", 13)
    pdf.cell(0, 9, title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_draw_color(*RULE)
    pdf.set_line_width(0.2)
    y = pdf.get_y()
    pdf.line(pdf.l_margin, y, pdf.l_margin + _effective_width(pdf), y)
    pdf.ln(2)


def _meta_block(pdf: "ReportPDF", rows: List[Tuple[str, str]]) -> None:  # Draw two-column metadata
    col = _effective_width(pdf) / 2.0
    line = 6
    for idx in range(0, len(rows), 2):
        left = rows[idx]
        right = rows[idx + 1] if idx + 1 < len(rows) else ("", "")
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.cell(col, line, left[0], new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, line, right[0], new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*TEXT)
        pdf.set_font(pdf.font_bold, "B", 11)
        pdf.cell(col, line, left[1], new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, line, right[1], new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


class ReportPDF(FPDF):  # PDF with custom header/footer styling
    def __init__(self, *args: Any, accent: Tuple[int, int, int] = ACCENT, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.accent = accent
        self.header_title = "Interview Feedback Report"
        self.font_regular = "Helvetica"
        self.font_bold = "Helvetica"
        self.supports_unicode = False

    def use_system_fonts(self) -> None:  # Switch to DejaVu when installed
        if not (os.path.exists(DEJAVU_SANS) and os.path.exists(DEJAVU_SANS_BOLD)):
            return
        self.add_font("DejaVu", "", DEJAVU_SANS)
        self.add_font("DejaVu", "B", DEJAVU_SANS_BOLD)
        self.font_regular = "DejaVu"
        self.font_bold = "DejaVu"
        self.supports_unicode = True

    @property
    def bullet(self) -> str:
        return "•" if self.supports_unicode else "-"

    def prepare_text(self, text: Any) -> str:  # Sanitize text for non-unicode fonts
        value = "" if text is None else str(text)
        if self.supports_unicode:
            return value
        cleaned = value.replace("•", "-").replace("’", "'").replace("“", '"').replace("”", '"')
        return cleaned.encode("latin-1", "replace").decode("latin-1")

    def cell(self, w=None, h=None, text="", *args, **kwargs):  # Wrap base cell with text sanitisation
        return super().cell(w, h, self.prepare_text(text), *args, **kwargs)

    def multi_cell(self, w, h=None, text="", *args, **kwargs):  # Wrap base multi_cell with text sanitisation
        return super().multi_cell(w, h, self.prepare_text(text), *args, **kwargs)

    def header(self) -> None:  # Render header banner
        usable = _effective_width(self)
        if self.page_no() == 1:
            self.set_fill_color(*self.accent)
            self.rect(0, 0, self.w, 20, style="F")
            self.set_text_color(255, 255, 255)
            self.set_xy(self.l_margin, 6)
            self.set_font(self.font_bold, "B", 16)
            self.cell(usable, 8, self.header_title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            self.set_text_color(*TEXT)
            self.set_y(26)
        else:
            self.set_text_color(80, 80, 80)
            self.set_xy(self.l_margin, 8)
            self.set_font(self.font_bold, "B", 12)
            self.cell(usable, 6, self.header_title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            mark = self.get_y()
            self.set_draw_color(*self.accent)
            self.set_line_width(0.4)
            self.line(self.l_margin, mark + 1, self.w - self.r_margin, mark + 1)
            self.set_text_color(*TEXT)
            self.ln(4)

    def footer(self) -> None:  # Render footer with pagination
        self.set_y(-12)
        self.set_draw_color(*RULE)
        self.set_line_width(0.2)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.set_text_color(120, 120, 120)
        self.set_font(self.font_regular, "", 9)
        self.cell(0, 10, f"Page {self.page_no()}/{{nb}}", align="R")


def _render_score(pdf: ReportPDF, score: int, confidence: float) -> None:  # Highlighted overall score box
    width = _effective_width(pdf)
    top = pdf.get_y()
    pdf.set_fill_color(*SOFT_ACCENT_BG)
    pdf.rect(pdf.l_margin, top, width, 16, style="F")
    pdf.set_xy(pdf.l_margin + 6, top + 5)
    pdf.set_text_color(*MUTED)
    pdf.set_font(pdf.font_regular, "", 10)
    label = "Overall Score" if confidence > 0 else "Overall Score (not validated)"
    pdf.cell(width / 2, 6, label)
    pdf.set_xy(pdf.l_margin + width / 2, top + 4)
    pdf.set_text_color(*ACCENT)
    pdf.set_font(pdf.font_bold, "B", 14)
    pdf.cell(width / 2 - 6, 8, f"{score}/100", align="R")
    pdf.set_y(top + 20)
    pdf.set_text_color(*TEXT)


def _render_list(pdf: ReportPDF, items: Sequence[str], empty: str) -> None:
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_regular, "", 11)
    if not items:
        pdf.set_text_color(*MUTED)
        pdf.multi_cell(_effective_width(pdf), 6, empty, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_text_color(*TEXT)
    for item in items:
        pdf.multi_cell(_effective_width(pdf), 6, f"{pdf.bullet} {item}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _render_feedback(pdf: ReportPDF, session: InterviewSession) -> None:
    feedback = session.feedback
    if feedback is None:
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 11)
        pdf.multi_cell(
            _effective_width(pdf),
            6,
            "Feedback has not been generated for this session yet.",
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )
        pdf.set_text_color(*TEXT)
        pdf.ln(2)
        return
    _render_score(pdf, feedback.score, feedback.confidence)
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_regular, "", 11)
    pdf.multi_cell(_effective_width(pdf), 6, feedback.summary, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)
    _section_title(pdf, "Strengths")
    _render_list(pdf, feedback.strengths, "No strengths recorded.")
    _section_title(pdf, "Areas for Improvement")
    _render_list(pdf, feedback.improvements, "No improvement areas recorded.")


def _render_turn(pdf: ReportPDF, turn: Turn) -> None:  # One transcript entry with role label
    width = _effective_width(pdf)
    label = ROLE_LABELS.get(turn.role, turn.role.title())
    pdf.set_x(pdf.l_margin)
    if turn.role == "assistant":
        pdf.set_text_color(*ACCENT)
    else:
        pdf.set_text_color(*MUTED)
    pdf.set_font(pdf.font_bold, "B", 10)
    stamp = turn.created_at.strftime("%H:%M:%S")
    pdf.cell(width, 6, f"{turn.sequence}. {label}  ({stamp})", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_text_color(*TEXT)
    pdf.set_font(pdf.font_regular, "", 10)
    pdf.multi_cell(width, 5.5, turn.content.strip() or "-", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _render_transcript(pdf: ReportPDF, history: Sequence[Turn]) -> None:  # Render transcript section
    if not history:
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.multi_cell(
            _effective_width(pdf),
            6,
            "No transcript entries recorded for this session.",
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )
        pdf.set_text_color(*TEXT)
        return
    for turn in history:
        _render_turn(pdf, turn)


def generate_feedback_report_pdf(  # Build PDF payload for a completed session
    session: InterviewSession,
    history: Sequence[Turn],
) -> bytes:
    if session.status is not SessionStatus.COMPLETED:
        raise ReportNotAvailable(f"session '{session.session_id}' is {session.status.value}, not completed")
    pdf = ReportPDF()
    pdf.use_system_fonts()
    pdf.alias_nb_pages()
    context = session.context
    pdf.header_title = f"{context.job_role} - {context.interview_type.title()} Interview Feedback"
    pdf.set_margins(15, 22, 15)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    _section_title(pdf, "Session Overview")
    _meta_block(
        pdf,
        [
            ("Session ID", session.session_id),
            ("Candidate", context.candidate_label or session.candidate_id),
            ("Role", context.job_role),
            ("Difficulty", context.difficulty.title()),
            ("Started", _format_datetime(session.started_at)),
            ("Ended", _format_datetime(session.ended_at)),
            ("Duration", _format_duration(session.duration_seconds)),
            ("Turns", str(len(history))),
        ],
    )

    _section_title(pdf, "Feedback")
    _render_feedback(pdf, session)

    _section_title(pdf, "Conversation Transcript")
    _render_transcript(pdf, history)

    return bytes(pdf.output())


__all__ = ["ReportNotAvailable", "generate_feedback_report_pdf"]
