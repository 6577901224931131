from enum import IntEnum


class Stage(IntEnum):
    '''Pipeline stages in execution order. ``Host`` is not a GPU stage, it
    marks values coming from uniform data supplied by the application.
    ``NoStage`` marks values which are valid everywhere (literals).'''
    NoStage = -1
    Host = 0
    Vertex = 1
    Control = 2
    Evaluation = 3
    Geometry = 4
    Fragment = 5

    def GetName(self) -> str:
        return self.name.lower()

    def GetPrefix(self) -> str:
        return self.GetName()[0]

    def IsGpuStage(self) -> bool:
        return self > Stage.Host


GPU_STAGES = [Stage.Vertex, Stage.Control, Stage.Evaluation, Stage.Geometry,
              Stage.Fragment]

# Upper bounds of the resource tables
MAX_VERTEX_BUFFERS = 32
MAX_TEXTURES = 32
MAX_SAMPLERS = 32
MAX_COLOR_TARGETS = 8


def StageBit(stage: Stage) -> int:
    return 1 << int(stage)


class StageMask:
    '''Set of stages, stored as a bit field.'''
    def __init__(self, bits=0):
        self.__bits = bits

    def Add(self, stage: Stage):
        self.__bits |= StageBit(stage)

    def Contains(self, stage: Stage) -> bool:
        return bool(self.__bits & StageBit(stage))

    def GetBits(self) -> int:
        return self.__bits

    def GetStages(self):
        return [s for s in Stage if s != Stage.NoStage and self.Contains(s)]

    def __iter__(self):
        return iter(self.GetStages())

    def __eq__(self, other):
        return isinstance(other, StageMask) and self.__bits == other.__bits

    def __hash__(self):
        return hash(self.__bits)

    def __repr__(self):
        return 'StageMask ({})'.format(
            ', '.join([s.GetName() for s in self.GetStages()]))
