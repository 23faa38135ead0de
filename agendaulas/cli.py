import json
from datetime import date

import click
from flask import Flask
from werkzeug.security import generate_password_hash

from .actor import Actor
from .constants import Papel
from .errors import AgendaError
from .extensions import db
from .models import Usuario
from .services.auditoria import audit_semana
from .services.feriados import add_feriado, parse_date_key, remove_feriado

# comandos de manutenção rodam como a gestão
SISTEMA = Actor(id=0, nome="sistema", papel=Papel.ADMIN)


@click.command("create-usuario")
@click.option("--nome", required=True, help="Nome do usuário")
@click.option("--email", required=True, help="Email do usuário")
@click.option("--senha", required=True, help="Senha em texto (será hasheada)")
@click.option(
    "--papel",
    type=click.Choice([p.value for p in Papel], case_sensitive=False),
    default=Papel.ADMIN.value,
    show_default=True,
)
def create_usuario_command(nome: str, email: str, senha: str, papel: str) -> None:
    email_normalized = email.strip().lower()

    existing = Usuario.query.filter_by(email=email_normalized).first()
    if existing is not None:
        raise click.ClickException("Já existe um usuário com esse email.")

    usuario = Usuario(
        nome=nome.strip(),
        email=email_normalized,
        senha_hash=generate_password_hash(senha),
        papel=papel.upper(),
    )
    db.session.add(usuario)
    db.session.commit()

    click.echo(f"Usuário criado: {usuario.email} ({usuario.papel}, id={usuario.id})")


def _parse_dia(raw: str) -> date:
    try:
        return parse_date_key(raw)
    except AgendaError as e:
        raise click.BadParameter(e.message) from None


@click.command("feriado-add")
@click.argument("dia")
def feriado_add_command(dia: str) -> None:
    key = add_feriado(_parse_dia(dia), actor=SISTEMA)
    click.echo(f"Feriado definido: {key}")


@click.command("feriado-remove")
@click.argument("dia")
def feriado_remove_command(dia: str) -> None:
    if not remove_feriado(_parse_dia(dia), actor=SISTEMA):
        raise click.ClickException("Esse dia não estava marcado como feriado.")
    click.echo(f"Feriado removido: {dia}")


@click.command("auditar-semana")
@click.option("--dia", default=None, help="Qualquer dia da semana desejada (YYYY-MM-DD). Padrão: hoje.")
@click.option("--json", "as_json", is_flag=True, help="Imprime o relatório completo em JSON")
def auditar_semana_command(dia: str | None, as_json: bool) -> None:
    relatorio = audit_semana(_parse_dia(dia) if dia else date.today())
    if as_json:
        click.echo(json.dumps(relatorio.to_dict(), ensure_ascii=False, indent=2))
        return

    click.echo(f"Semana {relatorio.week_start:%d/%m/%Y} a {relatorio.week_end:%d/%m/%Y}")
    click.echo(
        f"Confirmadas: {relatorio.confirmed}  Canceladas: {relatorio.cancelled}  Reposições: {relatorio.reposicao}"
    )
    for item in relatorio.wrong_frequency_list:
        click.echo(f"Frequência incorreta: {item.student_name} (esperado {item.expected}, marcado {item.actual})")
    for erro in relatorio.double_booking_list:
        alunos = ", ".join(f"{l['studentName']} {l['startAt']}" for l in erro.lessons)
        click.echo(f"Conflito de horário: {erro.teacher_name}: {alunos}")
    for erro in relatorio.inactive_teacher_list:
        click.echo(f"Professor inativo com aulas: {erro.teacher_name} ({len(erro.lessons)} aula(s))")


def register_commands(app: Flask) -> None:
    app.cli.add_command(create_usuario_command)
    app.cli.add_command(feriado_add_command)
    app.cli.add_command(feriado_remove_command)
    app.cli.add_command(auditar_semana_command)
