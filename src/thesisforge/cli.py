"""CLI entrypoints for ThesisForge."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from thesisforge.agents.advisor import AdvisorAgent
from thesisforge.agents.architect import ArchitectAgent
from thesisforge.agents.prompt_engineer import PromptEngineerAgent
from thesisforge.config import Settings, load_settings
from thesisforge.errors import ThesisForgeError
from thesisforge.events import RunEvent
from thesisforge.llm.client import LLMClient
from thesisforge.logging import configure_logging, get_logger
from thesisforge.models.outline import UserInput
from thesisforge.orchestrator.runner import ThesisWorkflow
from thesisforge.orchestrator.state import Phase
from thesisforge.render.markdown import render_thesis_markdown
from thesisforge.session import Session, load_session, save_session, save_session_in

app = typer.Typer(add_completion=False, help="ThesisForge multi-agent thesis drafting CLI")
logger = get_logger(__name__)


def _setup() -> tuple[Settings, LLMClient]:
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_file)
    return settings, LLMClient(settings)


def _echo_event(ev: RunEvent) -> None:
    typer.echo(f"[{ev.seq}] {ev.content_type.value}: {json.dumps(ev.data, ensure_ascii=False)}")


def _user_input(topic: str, field: str, focus: str, focus_file: Path | None) -> UserInput:
    if focus_file is not None:
        focus = focus_file.read_text(encoding="utf-8").strip()
    if not topic.strip():
        raise typer.BadParameter("TOPIC must not be empty.")
    return UserInput(topic=topic, field=field, specific_focus=focus)


def _fail(e: Exception) -> None:
    typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _save(session: Session, session_out: Path | None, settings: Settings) -> Path:
    if session_out is not None:
        return save_session(session, session_out)
    return save_session_in(session, settings.sessions_dir)


@app.command()
def run(
    topic: str = typer.Argument(..., help="Thesis topic."),
    field: str = typer.Option("", "--field", help="Research field."),
    focus: str = typer.Option("", "--focus", help="Specific focus / extra context."),
    focus_file: Path | None = typer.Option(
        None, "--focus-file", help="UTF-8 text file with the focus context (for long instructions)."
    ),
    output: Path = typer.Option(Path("thesis.md"), "--output", "-o", help="Output markdown file"),
    session_out: Path | None = typer.Option(None, "--session", help="Also save the session JSON here"),
) -> None:
    """Run the whole agent chain without pausing and write the markdown draft."""

    settings, llm = _setup()
    workflow = ThesisWorkflow.new(_user_input(topic, field, focus, focus_file), llm, on_event=_echo_event)
    try:
        workflow.run_all()
    except ThesisForgeError as e:
        _save(workflow.session, session_out, settings)
        _fail(e)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(workflow.markdown(), encoding="utf-8")
    if session_out is not None:
        save_session(workflow.session, session_out)
    typer.echo(str(output))


@app.command()
def start(
    topic: str = typer.Argument(..., help="Thesis topic."),
    field: str = typer.Option("", "--field"),
    focus: str = typer.Option("", "--focus"),
    focus_file: Path | None = typer.Option(None, "--focus-file"),
    session_out: Path | None = typer.Option(None, "--session", help="Session file (default: sessions dir)"),
) -> None:
    """Start a run, execute the first agent and stop at its checkpoint."""

    settings, llm = _setup()
    workflow = ThesisWorkflow.new(_user_input(topic, field, focus, focus_file), llm, on_event=_echo_event)
    try:
        workflow.start()
    except ThesisForgeError as e:
        _save(workflow.session, session_out, settings)
        _fail(e)
    typer.echo(str(_save(workflow.session, session_out, settings)))


@app.command()
def step(session_path: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Advance a saved session by one agent."""

    _, llm = _setup()
    workflow = ThesisWorkflow(load_session(session_path), llm, on_event=_echo_event)
    try:
        if workflow.state.phase == Phase.IDLE:
            workflow.start()
        elif workflow.state.phase == Phase.FAILED:
            workflow.retry()
        elif not workflow.continue_():
            typer.echo("Workflow finished.")
    except ThesisForgeError as e:
        save_session(workflow.session, session_path)
        _fail(e)
    save_session(workflow.session, session_path)


@app.command()
def regenerate(
    session_path: Path = typer.Argument(..., exists=True, dir_okay=False),
    section_ids: list[str] = typer.Option(..., "--id", help="Section id to rewrite (repeatable)"),
    instruction: str = typer.Option("", "--instruction", "-i", help="What to change"),
) -> None:
    """Rewrite selected sections with the agent of the current checkpoint."""

    _, llm = _setup()
    workflow = ThesisWorkflow(load_session(session_path), llm, on_event=_echo_event)
    try:
        workflow.regenerate_selected(section_ids, instruction or None)
    except ThesisForgeError as e:
        _fail(e)
    save_session(workflow.session, session_path)


@app.command()
def delete(
    session_path: Path = typer.Argument(..., exists=True, dir_okay=False),
    section_ids: list[str] = typer.Option(..., "--id", help="Section id to delete (repeatable)"),
) -> None:
    """Delete selected sections at the current checkpoint."""

    _, llm = _setup()
    workflow = ThesisWorkflow(load_session(session_path), llm)
    try:
        workflow.delete_selected(section_ids)
    except ThesisForgeError as e:
        _fail(e)
    save_session(workflow.session, session_path)


@app.command()
def render(
    session_path: Path = typer.Argument(..., exists=True, dir_okay=False),
    output: Path = typer.Option(Path("thesis.md"), "--output", "-o"),
) -> None:
    """Render a saved session to markdown."""

    settings = load_settings()
    configure_logging(settings.log_level, settings.log_file)
    session = load_session(session_path)
    output.write_text(render_thesis_markdown(session.outline, session.input.topic), encoding="utf-8")
    typer.echo(str(output))


@app.command()
def outline(
    topic: str = typer.Argument(...),
    field: str = typer.Option("", "--field"),
    focus: str = typer.Option("", "--focus"),
) -> None:
    """Only build the outline and print it as JSON."""

    _, llm = _setup()
    try:
        built = ArchitectAgent(llm).build_outline(_user_input(topic, field, focus, None))
    except ThesisForgeError as e:
        _fail(e)
    typer.echo(json.dumps(built.model_dump(mode="json", exclude_none=True), ensure_ascii=False, indent=2))


@app.command("new-agent")
def new_agent(name: str = typer.Argument(...), description: str = typer.Argument(...)) -> None:
    """Draft a system prompt for a custom agent."""

    _, llm = _setup()
    typer.echo(PromptEngineerAgent(llm).generate_agent_prompt(name, description))


@app.command()
def advise() -> None:
    """Chat with the supervisor until the topic and method are settled."""

    _, llm = _setup()
    advisor = AdvisorAgent(llm)
    history: list[dict[str, str]] = []
    while True:
        message = typer.prompt("you")
        history.append({"role": "user", "content": message})
        try:
            reply = advisor.reply(history)
        except ThesisForgeError as e:
            _fail(e)
        typer.echo(reply.text)
        history.append({"role": "assistant", "content": reply.text})
        if reply.finished:
            typer.echo(json.dumps(reply.data, ensure_ascii=False, indent=2))
            return


if __name__ == "__main__":
    app()
