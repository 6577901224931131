'''The validated description of one pipeline program.

A ``ProgramModel`` is built from a typed ``ast.Pipeline``. It checks every
parameter role against its type and slot, and builds the flat resource
tables (vertex bindings and attributes, textures, samplers, color targets)
used both by the code generators and the runtime pipeline layout.'''
import collections
from enum import Enum

from psl import ast, types, Errors
from psl.stage import (Stage, StageMask, MAX_VERTEX_BUFFERS, MAX_TEXTURES,
                       MAX_SAMPLERS, MAX_COLOR_TARGETS)


class InputRate(Enum):
    PerVertex = 0
    PerInstance = 1


TextureRecord = collections.namedtuple(
    'TextureRecord', ['name', 'type', 'slot', 'stage', 'parameter'])
ColorTargetRecord = collections.namedtuple(
    'ColorTargetRecord', ['name', 'index', 'parameter'])
VertexBinding = collections.namedtuple(
    'VertexBinding', ['binding', 'stride', 'inputRate', 'parameter'])
VertexAttribute = collections.namedtuple(
    'VertexAttribute',
    ['location', 'binding', 'offset', 'format', 'name', 'field', 'type',
     'locationCount'])


class SamplerRecord:
    '''A compile-time sampler configuration and the stages using it.'''
    def __init__(self, filterMode: int, wrapMode: int):
        self.__filter = filterMode
        self.__wrap = wrapMode
        self.__stages = StageMask()

    def GetFilter(self) -> int:
        return self.__filter

    def GetWrap(self) -> int:
        return self.__wrap

    def GetStageMask(self) -> StageMask:
        return self.__stages

    def AddStage(self, stage: Stage):
        self.__stages.Add(stage)

    def __repr__(self):
        return 'SamplerRecord ({}, {}, {})'.format(
            self.__filter, self.__wrap, repr(self.__stages))


_ROLE_STAGES = {
    ast.ParameterRole.Uniform: Stage.Host,
    ast.ParameterRole.VertexBuffer: Stage.Vertex,
    ast.ParameterRole.InstanceBuffer: Stage.Vertex,
    ast.ParameterRole.VertexTexture: Stage.Vertex,
    ast.ParameterRole.FragmentTexture: Stage.Fragment,
    ast.ParameterRole.Position: Stage.Vertex,
    ast.ParameterRole.ColorTarget: Stage.Fragment,
}

_OUTPUT_ROLES = {ast.ParameterRole.Position, ast.ParameterRole.ColorTarget}
_BUFFER_ROLES = {ast.ParameterRole.VertexBuffer,
                 ast.ParameterRole.InstanceBuffer}
_TEXTURE_ROLES = {ast.ParameterRole.VertexTexture,
                  ast.ParameterRole.FragmentTexture}


def GetParameterStage(parameter: ast.Parameter) -> Stage:
    '''The stage a parameter lives in. Uniform captures are host values.'''
    return _ROLE_STAGES[parameter.GetRole()]


def IsOutputParameter(parameter: ast.Parameter) -> bool:
    return parameter.GetRole() in _OUTPUT_ROLES


def IsTextureParameter(parameter: ast.Parameter) -> bool:
    return parameter.GetRole() in _TEXTURE_ROLES


def _IsFloat4(t):
    return isinstance(t, types.VectorType) and \
        isinstance(t.GetComponentType(), types.Float) and \
        t.GetComponentCount() == 4


def _CheckField(fieldName, recordName, fieldType):
    if isinstance(fieldType.GetComponentType(),
                  (types.Integer, types.UnsignedInteger)) and \
            fieldType.GetComponentType().GetBitWidth() != 32:
        Errors.ERROR_BAD_INTEGER_WIDTH.Raise(fieldName, recordName)
    if not types.IsFieldCompatible(fieldType):
        Errors.ERROR_BAD_FIELD_TYPE.Raise(fieldName, recordName, fieldType)


def _CheckRecord(recordType):
    for name, fieldType in recordType.GetFields().items():
        _CheckField(name, recordType.GetName(), fieldType)


_CHANNELS = ['R', 'RG', 'RGB', 'RGBA']


def GetAttributeFormat(t) -> str:
    '''Vertex attribute format of a scalar or vector type, for instance
    ``RGB32_SFLOAT`` for ``float3``.'''
    if isinstance(t, types.VectorType):
        count = t.GetComponentCount()
    else:
        count = 1
    component = t.GetComponentType()

    if isinstance(component, (types.Float, types.Double)):
        kind = 'SFLOAT'
    elif isinstance(component, types.Integer):
        kind = 'SINT'
    else:
        # Unsigned integers and enumerations
        kind = 'UINT'

    if isinstance(component, types.ScalarType):
        bits = component.GetBitWidth()
    else:
        bits = 32
    return '{}{}_{}'.format(_CHANNELS[count - 1], bits, kind)


def GetByteSize(t) -> int:
    '''Tightly packed size of a field type.'''
    if isinstance(t, types.MatrixType):
        return t.GetRowCount() * t.GetColumnCount() * \
            t.GetComponentType().GetByteSize()
    if isinstance(t, types.VectorType):
        return t.GetComponentCount() * t.GetComponentType().GetByteSize()
    if isinstance(t, types.ScalarType):
        return t.GetByteSize()
    # Enumerations
    return 4


class ProgramModel:
    def __init__(self, pipeline: ast.Pipeline, catalog, errorHandler=None):
        self.__pipeline = pipeline
        self.__catalog = catalog
        self.__errorHandler = errorHandler or Errors.ErrorHandler()

        self.__textures = []
        self.__colorTargets = []
        self.__bindings = []
        self.__attributes = []
        self.__samplers = []
        self.__position = None
        self.__useStages = StageMask()
        self.__useStages.Add(Stage.Host)

        self.__Validate()

    def __Validate(self):
        buffers = {}
        textures = {}
        colorTargets = {}

        failed = []
        firstMessage = len(self.__errorHandler.messages)

        def OnError():
            failed.append(True)

        for parameter in self.__pipeline.GetParameters():
            with Errors.CompileExceptionToErrorHandler(self.__errorHandler,
                                                       OnError):
                self.__ValidateParameter(parameter, buffers, textures,
                                         colorTargets)

        with Errors.CompileExceptionToErrorHandler(self.__errorHandler,
                                                   OnError):
            if self.__position is None and not colorTargets:
                Errors.ERROR_NO_STAGE_OUTPUT.Raise(
                    self.GetName(), location=self.__pipeline.GetLocation())

        if failed:
            raise Errors.ProgramException(
                self.GetName(), self.__errorHandler.messages[firstMessage:])

        if self.__position is not None or colorTargets:
            self.__useStages.Add(Stage.Vertex)
        if colorTargets:
            self.__useStages.Add(Stage.Fragment)

        for slot in sorted(textures):
            parameter = textures[slot]
            self.__textures.append(TextureRecord(
                parameter.GetName(), parameter.GetType(), slot,
                GetParameterStage(parameter), parameter))

        for index in sorted(colorTargets):
            parameter = colorTargets[index]
            self.__colorTargets.append(ColorTargetRecord(
                parameter.GetName(), index, parameter))

        location = 0
        for slot in sorted(buffers):
            parameter = buffers[slot]
            offset = 0
            for fieldName, fieldType in \
                    parameter.GetType().GetFields().items():
                name = '{}_{}'.format(parameter.GetName(), fieldName)
                if isinstance(fieldType, types.MatrixType):
                    columnType = fieldType.GetColumnType()
                    columnCount = fieldType.GetColumnCount()
                    for column in range(columnCount):
                        self.__attributes.append(VertexAttribute(
                            location + column, slot, offset,
                            GetAttributeFormat(columnType), name, fieldName,
                            fieldType, columnCount - column))
                        offset += GetByteSize(columnType)
                    location += columnCount
                else:
                    self.__attributes.append(VertexAttribute(
                        location, slot, offset, GetAttributeFormat(fieldType),
                        name, fieldName, fieldType, 1))
                    offset += GetByteSize(fieldType)
                    location += 1

            if parameter.GetRole() == ast.ParameterRole.InstanceBuffer:
                rate = InputRate.PerInstance
            else:
                rate = InputRate.PerVertex
            self.__bindings.append(VertexBinding(slot, offset, rate,
                                                 parameter))

    def __CheckSlot(self, parameter, table, limit, outOfRange, notUnique):
        slot = parameter.GetSlot()
        location = parameter.GetLocation()
        if slot < 0 or slot >= limit:
            outOfRange.Raise(slot, parameter.GetName(), limit,
                             location=location)
        if slot in table:
            notUnique.Raise(slot, parameter.GetName(),
                            table[slot].GetName(), location=location)
        table[slot] = parameter

    def __ValidateParameter(self, parameter, buffers, textures, colorTargets):
        role = parameter.GetRole()
        parameterType = parameter.GetType()
        name = parameter.GetName()
        location = parameter.GetLocation()

        if role == ast.ParameterRole.Position:
            if not _IsFloat4(parameterType):
                Errors.ERROR_BAD_POSITION_TYPE.Raise(name, location=location)
            self.__position = parameter
        elif role == ast.ParameterRole.ColorTarget:
            if not _IsFloat4(parameterType):
                Errors.ERROR_BAD_COLOR_TARGET_TYPE.Raise(name,
                                                         location=location)
            self.__CheckSlot(parameter, colorTargets, MAX_COLOR_TARGETS,
                             Errors.ERROR_COLOR_TARGET_OUT_OF_RANGE,
                             Errors.ERROR_COLOR_TARGET_NOT_UNIQUE)
        elif role in _BUFFER_ROLES:
            if not isinstance(parameterType, types.StructType):
                Errors.ERROR_BAD_VERTEX_BUFFER_TYPE.Raise(name,
                                                          location=location)
            self.__CheckSlot(parameter, buffers, MAX_VERTEX_BUFFERS,
                             Errors.ERROR_VERTEX_BUFFER_OUT_OF_RANGE,
                             Errors.ERROR_VERTEX_BUFFER_NOT_UNIQUE)
            _CheckRecord(parameterType)
        elif role in _TEXTURE_ROLES:
            typeId = self.__catalog.IdentifyType(parameterType)
            if typeId is None or not self.__catalog.IsTextureType(typeId):
                Errors.ERROR_BAD_TEXTURE_TYPE.Raise(name, location=location)
            self.__CheckSlot(parameter, textures, MAX_TEXTURES,
                             Errors.ERROR_TEXTURE_OUT_OF_RANGE,
                             Errors.ERROR_TEXTURE_NOT_UNIQUE)
        else:
            if isinstance(parameterType, types.StructType):
                _CheckRecord(parameterType)
            elif isinstance(parameterType, types.EnumType):
                pass
            elif not types.IsFieldCompatible(parameterType) or \
                    self.__catalog.IdentifyType(parameterType) is None:
                Errors.ERROR_BAD_UNIFORM_TYPE.Raise(name, parameterType,
                                                    location=location)

    def GetName(self):
        return self.__pipeline.GetName()

    def GetPipeline(self) -> ast.Pipeline:
        return self.__pipeline

    def GetBody(self) -> ast.CompoundStatement:
        return self.__pipeline.GetBody()

    def GetParameters(self):
        return self.__pipeline.GetParameters()

    def GetCatalog(self):
        return self.__catalog

    def GetOutputs(self, stage: Stage):
        '''Output parameters written by ``stage``, in declaration order.'''
        return [p for p in self.__pipeline.GetParameters()
                if IsOutputParameter(p) and GetParameterStage(p) == stage]

    def GetPosition(self):
        return self.__position

    def GetUseStages(self) -> StageMask:
        return self.__useStages

    def GetActiveStages(self):
        '''Active GPU stages, in pipeline order.'''
        return [s for s in self.__useStages if s.IsGpuStage()]

    def GetTextures(self):
        return self.__textures

    def GetColorTargets(self):
        return self.__colorTargets

    def GetVertexBindings(self):
        return self.__bindings

    def GetVertexAttributes(self):
        return self.__attributes

    def GetSamplers(self):
        return self.__samplers

    def RegisterSampler(self, filterMode: int, wrapMode: int,
                        stage: Stage) -> int:
        '''Return the index of the sampler with this configuration, adding
        it if it's new. ``stage`` is added to its usage mask.'''
        for i, sampler in enumerate(self.__samplers):
            if sampler.GetFilter() == filterMode and \
                    sampler.GetWrap() == wrapMode:
                sampler.AddStage(stage)
                return i

        if len(self.__samplers) >= MAX_SAMPLERS:
            Errors.ERROR_SAMPLER_LIMIT_REACHED.Raise(MAX_SAMPLERS)

        sampler = SamplerRecord(filterMode, wrapMode)
        sampler.AddStage(stage)
        self.__samplers.append(sampler)
        return len(self.__samplers) - 1
