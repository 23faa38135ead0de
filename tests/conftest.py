from datetime import date, datetime, timedelta

import pytest
from werkzeug.security import generate_password_hash

from agendaulas import create_app
from agendaulas.actor import Actor
from agendaulas.constants import (
    Curso,
    EscolaMatricula,
    Papel,
    StatusAula,
    StatusMatricula,
    StatusProfessor,
    TipoAula,
)
from agendaulas.extensions import db
from agendaulas.models import Aula, DisponibilidadeProfessor, Feriado, Matricula, Professor, Usuario
from agendaulas.services.notificacoes import EXTENSION_KEY, NotificationSink

# Segunda-feira
NOW = datetime(2026, 3, 2, 8, 0)
ADMIN_EMAIL = "gestao@escola.test"


class RecordingSink(NotificationSink):
    def __init__(self):
        self.sent = []

    def send(self, kind, recipient, context):
        self.sent.append((kind, recipient, context))

    def kinds(self, recipient=None):
        return [k for k, r, _ in self.sent if recipient is None or r == recipient]

    def clear(self):
        self.sent.clear()


class Factory:
    def __init__(self):
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def usuario(self, nome, papel=Papel.ALUNO, senha="segredo"):
        usuario = Usuario(
            nome=nome,
            email=f"{nome.lower().replace(' ', '.')}.{self._next()}@escola.test",
            senha_hash=generate_password_hash(senha),
            papel=papel.value,
        )
        db.session.add(usuario)
        db.session.commit()
        return usuario

    def actor(self, usuario):
        return Actor.from_usuario(usuario)

    def actor_de(self, pessoa):
        """Actor do usuário dono de um Professor ou de uma Matricula."""
        return Actor.from_usuario(db.session.get(Usuario, pessoa.usuario_id))

    def professor(self, nome="Ana", idiomas=("INGLES",), janelas=((1, 8 * 60, 12 * 60),), status=StatusProfessor.ATIVO):
        usuario = self.usuario(nome, Papel.PROFESSOR)
        professor = Professor(
            usuario_id=usuario.id,
            nome=nome,
            email=usuario.email,
            status=status.value,
            idiomas=list(idiomas),
        )
        for dia, inicio, fim in janelas:
            professor.disponibilidades.append(
                DisponibilidadeProfessor(dia_semana=dia, inicio_minutos=inicio, fim_minutos=fim)
            )
        db.session.add(professor)
        db.session.commit()
        return professor

    def matricula(
        self,
        nome="Bruno",
        *,
        curso=Curso.INGLES,
        escola=EscolaMatricula.SEIDMANN,
        frequencia=2,
        tempo=60,
        status=StatusMatricula.ATIVA,
        tipo=TipoAula.PARTICULAR,
        nome_grupo=None,
        with_usuario=True,
        **extra,
    ):
        usuario = self.usuario(nome, Papel.ALUNO) if with_usuario else None
        matricula = Matricula(
            usuario_id=usuario.id if usuario else None,
            nome=nome,
            email=usuario.email if usuario else None,
            curso=curso.value,
            escola_matricula=escola.value,
            frequencia_semanal=frequencia,
            tempo_aula_minutos=tempo,
            status=status.value,
            tipo_aula=tipo.value,
            nome_grupo=nome_grupo,
            **extra,
        )
        db.session.add(matricula)
        db.session.commit()
        return matricula

    def aula(self, matricula, professor, start_at, duration=60, status=StatusAula.CONFIRMADA, notes=None):
        aula = Aula(
            matricula_id=matricula.id,
            professor_id=professor.id,
            start_at=start_at,
            duration_minutes=duration,
            status=status.value,
            notes=notes,
        )
        db.session.add(aula)
        db.session.commit()
        return aula

    def feriado(self, dia: date):
        db.session.add(Feriado(date_key=dia.isoformat()))
        db.session.commit()


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "SECRET_KEY": "test",
            "NOTIFICACOES_ADMIN_EMAIL": ADMIN_EMAIL,
        }
    )
    app.extensions[EXTENSION_KEY] = RecordingSink()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def sink(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def factory(app):
    return Factory()


@pytest.fixture
def admin(factory):
    return factory.actor(factory.usuario("Gestão", Papel.ADMIN))


@pytest.fixture
def professor(factory):
    return factory.professor()


@pytest.fixture
def matricula(factory):
    return factory.matricula()


@pytest.fixture
def aluno(factory, matricula):
    return factory.actor_de(matricula)


@pytest.fixture
def professor_actor(factory, professor):
    return factory.actor_de(professor)


def next_monday(start: date | None = None) -> date:
    start = start or date.today()
    return start + timedelta(days=7 - start.weekday())
