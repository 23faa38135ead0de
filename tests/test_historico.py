from datetime import datetime

from agendaulas.constants import AcaoHistorico
from agendaulas.services.historico import notes_com_historico, registrar_evento, render_evento
from conftest import NOW


class TestHistorico:
    def test_lines_are_appended_in_order_after_notes(self, factory, professor, matricula):
        aula = factory.aula(matricula, professor, datetime(2026, 3, 9, 9), notes="  Levar material  ")
        registrar_evento(aula, AcaoHistorico.REAGENDADA, ator_nome="Gestão", ocorrido_em=NOW)
        registrar_evento(aula, AcaoHistorico.CANCELADA, ator_nome="aluno", ocorrido_em=datetime(2026, 3, 3, 14, 5))

        assert notes_com_historico(aula).splitlines() == [
            "Levar material",
            "Aula foi reagendada pelo Gestão às 02/03/2026 08:00",
            "Aula foi cancelada pelo aluno às 03/03/2026 14:05",
        ]

    def test_student_request_approved_by_someone_else(self, factory, professor, matricula):
        aula = factory.aula(matricula, professor, datetime(2026, 3, 9, 9))
        evento = registrar_evento(
            aula,
            AcaoHistorico.REAGENDADA,
            ator_nome="Marta",
            ocorrido_em=datetime(2026, 3, 4, 10, 0),
            solicitado_em=datetime(2026, 3, 2, 7, 30),
        )

        assert render_evento(evento) == (
            "Aula reagendada pelo aluno no dia 02/03/2026 07:30 e aprovado pelo Marta no dia 04/03/2026 10:00"
        )

    def test_no_notes_and_no_events(self, factory, professor, matricula):
        aula = factory.aula(matricula, professor, datetime(2026, 3, 9, 9))

        assert notes_com_historico(aula) == ""
