"""Errors raised by the tournament desk services.

Each error carries the HTTP status the REST layer answers with, so routes can
let them propagate to the app-wide error handler.
"""


class TournamentDeskError(Exception):
    status_code = 400
    default_message = 'No se pudo completar la operación'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ScheduledMatchNotFound(TournamentDeskError):
    status_code = 404
    default_message = 'Partido programado no encontrado'


class MatchNotFound(TournamentDeskError):
    status_code = 404
    default_message = 'Partido no encontrado'


class PlayerNotInMatch(TournamentDeskError):
    status_code = 404
    default_message = 'Jugador no encontrado en el partido'


class TournamentNotFound(TournamentDeskError):
    status_code = 404
    default_message = 'Torneo no encontrado'


class InvalidMatchState(TournamentDeskError):
    status_code = 400
    default_message = 'El partido no admite esta acción en su estado actual'


class InvalidScheduleData(TournamentDeskError):
    status_code = 400
    default_message = 'Datos de partido programado inválidos'


class CourtAssignmentError(TournamentDeskError):
    default_message = 'No se pudo asignar la cancha'


class CourtNotFound(CourtAssignmentError):
    status_code = 404
    default_message = 'Cancha no encontrada'


class NoCourtsAvailable(CourtAssignmentError):
    status_code = 404
    default_message = 'No hay canchas disponibles'


class CourtUnavailable(CourtAssignmentError):
    status_code = 400
    default_message = 'Esta cancha no está disponible'


class AssignmentFailed(CourtAssignmentError):
    status_code = 500
    default_message = 'No se pudo asignar la cancha'


class InvalidPayload(TournamentDeskError):
    status_code = 400
    default_message = 'Invalid JSON payload'
