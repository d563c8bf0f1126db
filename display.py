import os
from typing import Dict, List, Optional

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from models import (
    QuestionBank,
    ReadingPassage,
    ReadingQuestion,
    SpeakingMessage,
    SpeakingModule,
    TestResult,
    WritingFeedback,
)

custom_theme = Theme({
    "correct": "bold green",
    "wrong": "bold red",
    "skip": "dim",
    "strong": "bold green",
    "needs_work": "bold yellow",
    "weak": "bold red",
    "info": "bold cyan",
    "header": "bold magenta",
    "examiner": "bold blue",
    "candidate": "bold white",
    "timer_ok": "bold green",
    "timer_warn": "bold yellow",
    "timer_critical": "bold red",
})

console = Console(theme=custom_theme)


def band_style(score: float) -> str:
    if score >= 7.0:
        return "strong"
    if score >= 5.5:
        return "needs_work"
    return "weak"


# ---------------------------------------------------------------------------
# General UI
# ---------------------------------------------------------------------------

def clear_screen() -> None:
    os.system("cls" if os.name == "nt" else "clear")


def show_banner() -> None:
    banner = Text()
    banner.append("  Arin's IELTS Practice  ", style="bold white on blue")
    console.print()
    console.print(Align.center(banner))
    console.print(Align.center(Text("Academic Reading, Writing and Speaking mock tests", style="dim")))
    console.print()


def show_menu(title: str, options: List[str]) -> int:
    """Show a numbered menu and return 1-indexed selection."""
    console.print(Rule(title, style="header"))
    console.print()
    for i, option in enumerate(options, 1):
        console.print(f"  [bold cyan]{i}.[/bold cyan] {option}")
    console.print()

    while True:
        try:
            raw = console.input("[bold]Choose an option: [/bold]").strip()
            choice = int(raw)
            if 1 <= choice <= len(options):
                return choice
            console.print(f"  Please enter a number between 1 and {len(options)}.", style="wrong")
        except (ValueError, EOFError):
            console.print(f"  Please enter a number between 1 and {len(options)}.", style="wrong")


def show_error(message: str) -> None:
    console.print(f"  [wrong]Error:[/wrong] {message}")


def show_success(message: str) -> None:
    console.print(f"  [correct]{message}[/correct]")


def show_info(message: str) -> None:
    console.print(f"  [info]{message}[/info]")


def show_warning(message: str) -> None:
    console.print(f"  [needs_work]Warning:[/needs_work] {message}")


def confirm(prompt: str) -> bool:
    while True:
        raw = console.input(f"  {prompt} [bold](y/n)[/bold]: ").strip().lower()
        if raw in ("y", "yes"):
            return True
        if raw in ("n", "no"):
            return False
        console.print("  Please enter y or n.", style="dim")


def prompt_text(prompt: str, default: str = "", password: bool = False) -> str:
    suffix = f" [{default}]" if default else ""
    raw = console.input(f"  {prompt}{suffix}: ", password=password).strip()
    return raw if raw else default


def prompt_multiline(prompt: str) -> str:
    """Read lines until a single '.' on its own line."""
    console.print(f"  {prompt} [dim](finish with a single '.' on its own line)[/dim]")
    lines = []
    while True:
        try:
            line = console.input("")
        except EOFError:
            break
        if line.strip() == ".":
            break
        lines.append(line)
    return "\n".join(lines)


def press_enter_to_continue() -> None:
    try:
        console.input("\n  [dim]Press Enter to continue...[/dim]")
    except EOFError:
        pass


def show_storage_mode(mode: str, connected: bool) -> None:
    if mode == "remote":
        state = "[correct]connected[/correct]" if connected else "[needs_work]unreachable, using local[/needs_work]"
        console.print(f"  Storage: Cloud database ({state})")
    else:
        console.print("  Storage: [info]Local files[/info]")


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def show_passage(index: int, total: int, passage: ReadingPassage) -> None:
    console.print()
    console.print(Panel(
        passage.content,
        title=f"[header]Passage {index + 1}/{total}: {passage.title}[/header]",
        border_style="cyan",
        padding=(1, 2),
    ))
    console.print()


def show_question(question: ReadingQuestion, answer: Optional[str] = None) -> None:
    if question.group_instruction:
        console.print(f"  [dim]{question.group_instruction}[/dim]")
    current = f"  [info]({answer})[/info]" if answer else ""
    console.print(f"  [bold]{question.id}.[/bold] {question.text}{current}")
    for option in question.options or []:
        console.print(f"      {option}")


def show_reading_result(result: TestResult, marks: Dict[int, bool]) -> None:
    details = result.details
    style = band_style(result.score)
    console.print()
    console.print(Panel(
        f"[bold]Reading Test Complete[/bold]\n\n"
        f"Raw score: {details.raw_score}/{details.total_questions}\n"
        f"Band: [{style}]{result.score}[/{style}]",
        border_style="blue",
        padding=(1, 2),
    ))
    wrong = [str(qid) for qid, ok in sorted(marks.items()) if not ok]
    if wrong:
        console.print(f"  [wrong]Missed:[/wrong] {', '.join(wrong)}")
    console.print()


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def show_writing_prompt(task_type: str, prompt: str, minutes: int) -> None:
    console.print()
    console.print(Panel(
        prompt,
        title=f"[header]Writing {task_type}[/header]",
        subtitle=f"[dim]Suggested time: {minutes} minutes[/dim]",
        border_style="blue",
        padding=(1, 2),
    ))
    console.print()


def show_elapsed(formatted: str, over_time: bool) -> None:
    style = "timer_critical" if over_time else "timer_ok"
    console.print(f"  Time: [{style}]{formatted}[/{style}]")


def show_writing_feedback(feedback: WritingFeedback, word_count: int) -> None:
    table = Table(title="Writing Assessment", border_style="blue")
    table.add_column("Criterion", style="bold")
    table.add_column("Band", justify="right")

    scores = feedback.scores
    table.add_row("Task Response", str(scores.task_response))
    table.add_row("Coherence & Cohesion", str(scores.coherence_cohesion))
    table.add_row("Lexical Resource", str(scores.lexical_resource))
    table.add_row("Grammatical Range & Accuracy", str(scores.grammatical_range))
    table.add_section()
    style = band_style(feedback.overall_band)
    table.add_row("Overall", f"[{style}]{feedback.overall_band}[/{style}]", style="bold")

    console.print()
    console.print(table)
    console.print(f"  Words: {word_count}")
    console.print()
    if feedback.feedback:
        console.print(Panel(feedback.feedback, title="Examiner feedback", border_style="dim", padding=(0, 2)))
    if feedback.improvement_tips:
        console.print("  [bold]How to improve:[/bold]")
        for tip in feedback.improvement_tips:
            console.print(f"    - {tip}")
    console.print()


# ---------------------------------------------------------------------------
# Speaking
# ---------------------------------------------------------------------------

def show_cue_card(module: SpeakingModule) -> None:
    if not module.part2_cue_card:
        return
    console.print(Panel(module.part2_cue_card, title="[header]Part 2 Cue Card[/header]", border_style="cyan"))


def show_message(message: SpeakingMessage) -> None:
    if message.role == "examiner":
        console.print(f"  [examiner]Examiner:[/examiner] {message.text}")
    else:
        console.print(f"  [candidate]You:[/candidate] {message.text}")


def show_transcript(transcript: List[SpeakingMessage]) -> None:
    console.print(Rule("Speaking Test", style="header"))
    for message in transcript:
        show_message(message)
    console.print()


# ---------------------------------------------------------------------------
# Content and results
# ---------------------------------------------------------------------------

def show_banks(banks: List[QuestionBank]) -> None:
    if not banks:
        console.print("  No question banks uploaded yet.")
        return

    table = Table(border_style="blue", padding=(0, 1))
    table.add_column("#", justify="right", style="dim")
    table.add_column("Bank", style="bold")
    table.add_column("Test")
    table.add_column("Modules")
    table.add_column("Uploaded", style="dim")

    row = 1
    for bank in banks:
        for test in bank.tests:
            modules = ", ".join(m.value for m in test.modules)
            table.add_row(str(row), bank.name, test.name, modules, bank.uploaded_at[:10])
            row += 1
    console.print(table)


def show_history(results: List[TestResult], show_user: bool = False) -> None:
    if not results:
        console.print("  No results yet.")
        return

    table = Table(border_style="blue", padding=(0, 1))
    table.add_column("Date", style="dim", width=12)
    if show_user:
        table.add_column("User")
    table.add_column("Module", style="bold")
    table.add_column("Band", justify="right")
    table.add_column("Details")

    for r in results:
        if not r.is_graded:
            band = "[skip]-[/skip]"
        else:
            band = f"[{band_style(r.score)}]{r.score}[/{band_style(r.score)}]"
        row = [r.date[:10]]
        if show_user:
            row.append(r.user_id)
        row.extend([r.module.value, band, _describe_details(r)])
        table.add_row(*row)
    console.print(table)


def _describe_details(result: TestResult) -> str:
    details = result.details
    if result.module.value == "Reading":
        return f"{details.raw_score}/{details.total_questions} correct"
    if result.module.value == "Writing":
        return details.task_type
    return f"{details.length} turns (not graded)"


def show_summary(summary: Dict, recommendations: List[str]) -> None:
    console.print()
    console.print(Rule("Progress Report", style="header"))
    console.print()

    table = Table(border_style="blue", padding=(0, 1))
    table.add_column("Module", style="bold")
    table.add_column("Attempts", justify="right")
    table.add_column("Latest band", justify="right")
    for module, count in summary["attempts"].items():
        latest = summary["latest"].get(module)
        table.add_row(module, str(count), "-" if latest is None else str(latest))
    console.print(table)

    if summary["overall_band"] is not None:
        console.print(
            f"  Average band: [bold]{summary['overall_band']}[/bold]  |  "
            f"Estimated overall: [bold]{summary['estimated_band']}[/bold]"
        )
    console.print()

    if summary["trend"]:
        console.print(Rule("Recent Scores", style="dim"))
        show_score_trend(summary["trend"])
        console.print()

    if recommendations:
        console.print(Rule("Recommendations", style="dim"))
        for rec in recommendations:
            console.print(f"  - {rec}")
        console.print()


def show_score_trend(trend: List[Dict]) -> None:
    """Bar chart of band scores, oldest first."""
    bar_width = 36
    table = Table(show_header=True, border_style="dim", padding=(0, 1))
    table.add_column("Date", style="dim", width=12)
    table.add_column("Module", width=9)
    table.add_column("Band", justify="right", width=5)
    table.add_column("", width=bar_width + 2)

    for point in trend:
        filled = int(point["score"] / 9.0 * bar_width)
        style = band_style(point["score"])
        bar = f"[{style}]{'█' * filled}[/{style}]"
        table.add_row(point["date"], point["module"], str(point["score"]), bar)
    console.print(table)
