#!/usr/bin/env python3
"""Arin's IELTS Practice: main entry point and menu system."""

import logging
import sys
from dataclasses import dataclass
from typing import List, Optional

import config
import display
from content_repository import ContentRepository
from errors import ExtractionFailed, PracticeError, ValidationError
from examiner import DocumentExtractor, SpeakingExaminer, WritingGrader
from identity import ConfigProvider, IdentityProvider, Session, UserRepository
from local_store import LocalStore
from models import DBConfig, TaskType, TestEntry, TestModule
from progress import ProgressTracker
from reading import ReadingSession, ReadingState
from result_repository import ResultRepository
from speaking import SpeakingSession
from storage import StorageBackend
from upload import QuestionBankImporter
from writing import WritingSession, WritingState

logger = logging.getLogger(__name__)


@dataclass
class Services:
    local: LocalStore
    backend: StorageBackend
    db_settings: ConfigProvider
    content: ContentRepository
    results: ResultRepository
    identity: IdentityProvider


def build_services() -> Services:
    local = LocalStore(config.DATA_DIR)
    db_settings = ConfigProvider(config.DATA_DIR)
    backend = StorageBackend(local, db_settings.get_db_config())
    db_settings.backend = backend
    return Services(
        local=local,
        backend=backend,
        db_settings=db_settings,
        content=ContentRepository(backend),
        results=ResultRepository(backend),
        identity=IdentityProvider(local, UserRepository(backend)),
    )


def check_api_key() -> bool:
    """Verify the Anthropic API key is configured."""
    if not config.ANTHROPIC_API_KEY:
        display.show_error(
            "ANTHROPIC_API_KEY is not set.\n"
            "  1. Copy .env.example to .env\n"
            "  2. Add your Anthropic API key\n"
            "  3. Run the app again\n"
        )
        return False
    return True


def login(services: Services) -> Optional[Session]:
    session = services.identity.restore()
    if session:
        display.show_info(f"Welcome back, {session.user.name}!")
        return session

    for _ in range(3):
        username = display.prompt_text("Username")
        password = display.prompt_text("Password", password=True)
        session = services.identity.login(username, password)
        if session:
            display.show_success(f"Signed in as {session.user.name}")
            return session
        display.show_error("Invalid username or password.")
    return None


def choose_test(services: Services, module: TestModule) -> Optional[TestEntry]:
    entries = services.content.list_tests_by_module(module)
    if not entries:
        display.show_warning(f"No {module.value} tests available. Ask an admin to upload a question bank.")
        return None
    options = [f"{e.test.name}  [dim]({e.bank_name})[/dim]" for e in entries]
    options.append("Back")
    choice = display.show_menu(f"{module.value} Tests", options)
    if choice == len(options):
        return None
    return entries[choice - 1]


# ---------------------------------------------------------------------------
# Student flows
# ---------------------------------------------------------------------------

def run_reading(services: Services, session: Session) -> None:
    entry = choose_test(services, TestModule.READING)
    if not entry:
        return

    reading = ReadingSession(services.content, services.results, session)
    state = reading.select_test(entry.test.id, entry.bank_id)
    if state == ReadingState.CONTENT_INCOMPLETE:
        display.show_error("This test is incomplete (it needs 3 passages). Please choose another.")
        return

    passages = reading.module.passages
    while True:
        passage = reading.current_passage
        display.show_passage(reading.passage_index, len(passages), passage)
        for q in passage.questions:
            display.show_question(q, reading.answers.get(q.id))
            value = display.prompt_text("Answer (Enter to keep)")
            if value:
                reading.answer(q.id, value)

        options = [f"Passage {i + 1}" for i in range(len(passages))] + ["Submit test"]
        choice = display.show_menu("Navigate", options)
        if choice == len(options):
            if display.confirm("Submit your answers?"):
                break
            continue
        reading.go_to_passage(choice - 1)

    result = reading.submit()
    marks = {q.id: reading.is_question_correct(q.id) for q in reading.module.questions}
    display.show_reading_result(result, marks)


def run_writing(services: Services, session: Session) -> None:
    entry = choose_test(services, TestModule.WRITING)
    if not entry:
        return

    task = display.show_menu("Choose a task", [TaskType.TASK1.value, TaskType.TASK2.value])
    task_type = TaskType.TASK1 if task == 1 else TaskType.TASK2

    grader = WritingGrader()
    writing = WritingSession(services.content, services.results, grader, session)
    writing.select_test(entry.test.id, task_type, entry.bank_id)
    display.show_writing_prompt(task_type.value, writing.prompt, config.WRITING_TASK_MINUTES[task_type.value])
    if not display.confirm("Start the timer?"):
        return
    writing.start()

    while writing.state != WritingState.GRADED:
        if not writing.essay.strip() or display.confirm("Rewrite the essay?"):
            writing.edit(display.prompt_multiline("Write your essay"))
        display.show_elapsed(writing.stopwatch.get_formatted_elapsed(), writing.is_over_time)
        display.show_info(f"{writing.word_count} words")
        if not display.confirm("Submit for grading?"):
            if display.confirm("Discard this essay?"):
                return
            continue
        try:
            with display.console.status("Grading your essay..."):
                writing.submit()
        except PracticeError as e:
            display.show_error(f"{e} Your essay was kept; you can try again.")

    display.show_writing_feedback(writing.feedback, writing.word_count)


def run_speaking(services: Services, session: Session) -> None:
    entry = choose_test(services, TestModule.SPEAKING)
    if not entry:
        return

    examiner = SpeakingExaminer()
    speaking = SpeakingSession(services.content, services.results, examiner, session)
    speaking.select_test(entry.test.id, entry.bank_id)
    display.show_cue_card(speaking.context)
    display.show_transcript(speaking.transcript)
    display.show_info("Type 'reset' to start over or 'quit' to finish.")

    while True:
        text = display.prompt_text("You")
        if text.lower() == "quit":
            break
        if text.lower() == "reset":
            speaking.reset()
            display.show_transcript(speaking.transcript)
            continue
        try:
            with display.console.status("Examiner is thinking..."):
                reply = speaking.send_candidate_turn(text)
        except ValidationError as e:
            display.show_warning(str(e))
            continue
        except PracticeError as e:
            display.show_error(str(e))
            continue
        display.console.print(f"  [examiner]Examiner:[/examiner] {reply}")

    if speaking.provisional_result:
        display.show_info("Session recorded. Speaking is not graded yet.")


def show_progress(services: Services, session: Session) -> None:
    tracker = ProgressTracker(services.results, session)
    results = tracker.history()
    summary = tracker.summary(results)
    display.show_summary(summary, tracker.get_recommendations(summary))
    display.show_history(results)


# ---------------------------------------------------------------------------
# Admin flows
# ---------------------------------------------------------------------------

def import_question_bank(services: Services) -> None:
    path = display.prompt_text("Path to PDF")
    if not path:
        return
    modules: List[TestModule] = list(TestModule)
    choice = display.show_menu("Module", [m.value for m in modules])
    importer = QuestionBankImporter(services.content, DocumentExtractor())
    try:
        with display.console.status("Extracting tests..."):
            bank = importer.import_file(path, modules[choice - 1])
    except ExtractionFailed as e:
        display.show_error(str(e))
        return
    display.show_success(f"Saved '{bank.name}' with {len(bank.tests)} test(s).")


def manage_tests(services: Services) -> None:
    banks = services.content.list_banks()
    display.show_banks(banks)
    rows = [(bank, test) for bank in banks for test in bank.tests]
    if not rows:
        return
    if not display.confirm("Delete a test?"):
        return
    index = display.prompt_text("Row number")
    try:
        bank, test = rows[int(index) - 1]
    except (ValueError, IndexError):
        display.show_error("No such row.")
        return
    if display.confirm(f"Delete '{test.name}' from '{bank.name}'?"):
        services.content.delete_test(bank.id, test.id)
        display.show_success("Deleted.")


def database_settings(services: Services) -> None:
    while True:
        display.show_storage_mode(services.backend.storage_mode.value, services.backend.remote_connected)
        choice = display.show_menu("Database Settings", [
            "Connect cloud database",
            "Disconnect (use local files)",
            "Back",
        ])
        if choice == 1:
            url = display.prompt_text("Database URL or project ref")
            key = display.prompt_text("Password", password=True)
            try:
                services.db_settings.save_db_config(DBConfig(url=url, key=key))
            except ValidationError as e:
                display.show_error(str(e))
                continue
            if services.backend.remote_connected:
                display.show_success("Connected.")
            else:
                display.show_warning("Saved, but the database is unreachable. Local files are used meanwhile.")
        elif choice == 2:
            services.db_settings.clear_db_config()
            display.show_success("Disconnected. Using local files.")
        else:
            return


# ---------------------------------------------------------------------------
# Menus
# ---------------------------------------------------------------------------

def student_menu(services: Services, session: Session) -> bool:
    """Returns False when the user logs out."""
    choice = display.show_menu("Main Menu", [
        "Reading Test",
        "Writing Test",
        "Speaking Test",
        "Progress & History",
        "Log out",
    ])
    if choice == 1:
        run_reading(services, session)
    elif choice == 2:
        run_writing(services, session)
    elif choice == 3:
        run_speaking(services, session)
    elif choice == 4:
        show_progress(services, session)
    else:
        return False
    display.press_enter_to_continue()
    return True


def admin_menu(services: Services, session: Session) -> bool:
    choice = display.show_menu("Admin Menu", [
        "Upload question bank (PDF)",
        "Manage tests",
        "Database settings",
        "All results",
        "Log out",
    ])
    if choice == 1:
        import_question_bank(services)
    elif choice == 2:
        manage_tests(services)
    elif choice == 3:
        database_settings(services)
    elif choice == 4:
        display.show_history(services.results.list_all_results(), show_user=True)
    else:
        return False
    display.press_enter_to_continue()
    return True


def main_menu_loop(services: Services, session: Session) -> None:
    menu = admin_menu if session.user.is_admin else student_menu
    while True:
        display.clear_screen()
        display.show_banner()
        display.show_info(f"{session.user.name} | {session.user.role.title()}")
        display.show_storage_mode(services.backend.storage_mode.value, services.backend.remote_connected)
        display.console.print()

        try:
            if not menu(services, session):
                services.identity.logout(session)
                display.show_info("Goodbye! Keep up the great work!")
                break
        except KeyboardInterrupt:
            display.console.print("\n")
            display.show_info("Returning to main menu...")
            continue
        except PracticeError as e:
            logger.exception("Operation failed")
            display.show_error(str(e))
            display.press_enter_to_continue()


def main() -> None:
    """Entry point."""
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=str(config.DATA_DIR / "ielts_practice.log"),
    )
    display.clear_screen()
    display.show_banner()

    if not check_api_key():
        display.show_warning("Running without API key. Grading, speaking and uploads are unavailable.")
        display.press_enter_to_continue()

    try:
        services = build_services()
    except PracticeError as e:
        display.show_error(str(e))
        sys.exit(1)

    try:
        session = login(services)
        if not session:
            display.show_error("Too many failed attempts. Exiting.")
            sys.exit(1)
        main_menu_loop(services, session)
    except KeyboardInterrupt:
        display.console.print("\n")
        display.show_info("Goodbye!")
    finally:
        services.backend.close()


if __name__ == "__main__":
    main()
