from psl.parser import PslParser
from psl.passes import (
    ComputeTypes,
    PrettyPrint,
    ValidateSwizzle,
    ValidateVariableNames,
)
from psl import Errors
from psl.Builtins import BuiltinCatalog
from psl.Pass import RunPasses
from psl.Program import ProgramModel
from psl.StageCompiler import (StageSources, MakeStageCompiler,
                               GetSharedObjectTable)
from psl.StageGraph import BuildStageGraph
from psl.Targets import Target
from psl.Universe import CreateStandardUniverse, FILTER, WRAP
from psl.codegen import GetGenerator
from typing import List, Optional
import collections

BindingDescriptor = collections.namedtuple(
    'BindingDescriptor', ['binding', 'stride', 'inputRate'])
AttributeDescriptor = collections.namedtuple(
    'AttributeDescriptor', ['location', 'binding', 'offset', 'format'])
TextureDescriptor = collections.namedtuple(
    'TextureDescriptor', ['name', 'type', 'slot', 'stage'])
SamplerDescriptor = collections.namedtuple(
    'SamplerDescriptor', ['filter', 'wrap', 'stages'])
ColorTargetDescriptor = collections.namedtuple(
    'ColorTargetDescriptor', ['name', 'index'])
# Host side: copy 'expression' into 'field' of the uniform record of a
# stage, then push the record to the stage
HostStatement = collections.namedtuple(
    'HostStatement', ['stage', 'record', 'field', 'expression'])
PushStatement = collections.namedtuple(
    'PushStatement', ['stage', 'record', 'field'])
StageData = collections.namedtuple(
    'StageData', ['stage', 'source', 'objectName', 'hash'])


def _GetEnumName(enumType, value):
    for name, v in enumType.GetValues().items():
        if v == value:
            return name
    return str(value)


class PipelineLayout:
    '''Static tables a runtime needs to bind resources of a pipeline.'''
    def __init__(self, program, graph):
        self.__bindings = [
            BindingDescriptor(b.binding, b.stride, b.inputRate.name)
            for b in program.GetVertexBindings()]
        self.__attributes = [
            AttributeDescriptor(a.location, a.binding, a.offset, a.format)
            for a in program.GetVertexAttributes()]
        self.__textures = [
            TextureDescriptor(t.name, t.type.GetName(), t.slot,
                              t.stage.GetName())
            for t in program.GetTextures()]
        self.__samplers = [
            SamplerDescriptor(_GetEnumName(FILTER, s.GetFilter()),
                              _GetEnumName(WRAP, s.GetWrap()),
                              s.GetStageMask().GetBits())
            for s in program.GetSamplers()]
        self.__colorTargets = [
            ColorTargetDescriptor(c.name, c.index)
            for c in program.GetColorTargets()]
        self.__hostStatements = [
            HostStatement(a.stage.GetName(),
                          graph.GetHostRecord(a.stage).GetName(),
                          a.field.GetName(), str(a.expression))
            for a in graph.GetHostAssignments()]
        self.__pushStatements = [
            PushStatement(p.stage.GetName(), p.record.GetName(),
                          p.field.GetName())
            for p in graph.GetPushActions()]

    @property
    def VertexBindings(self) -> List[BindingDescriptor]:
        return self.__bindings

    @property
    def VertexAttributes(self) -> List[AttributeDescriptor]:
        return self.__attributes

    @property
    def Textures(self) -> List[TextureDescriptor]:
        return self.__textures

    @property
    def Samplers(self) -> List[SamplerDescriptor]:
        return self.__samplers

    @property
    def ColorTargets(self) -> List[ColorTargetDescriptor]:
        return self.__colorTargets

    @property
    def HostStatements(self) -> List[HostStatement]:
        return self.__hostStatements

    @property
    def PushStatements(self) -> List[PushStatement]:
        return self.__pushStatements


class ShaderData:
    '''The stages of one pipeline compiled for one target.'''
    def __init__(self, target: Target, stages: List[StageData]):
        self.__target = target
        self.__stages = stages

    @property
    def Target(self) -> Target:
        return self.__target

    @property
    def Stages(self) -> List[StageData]:
        return self.__stages

    def GetStage(self, stage) -> Optional[StageData]:
        for data in self.__stages:
            if data.stage == stage.GetName():
                return data
        return None


class PipelineData:
    def __init__(self, name, layout: PipelineLayout, shaders):
        self.__name = name
        self.__layout = layout
        self.__shaders = shaders

    @property
    def Name(self) -> str:
        return self.__name

    @property
    def Layout(self) -> PipelineLayout:
        return self.__layout

    @property
    def Shaders(self):
        '''Dictionary from ``Target`` to ``ShaderData``.'''
        return self.__shaders


class Compiler:
    class Result:
        def __init__(self, *, pipelines, failedPipelines, objects):
            self.__pipelines = pipelines
            self.__failedPipelines = failedPipelines
            self.__objects = objects

        @property
        def Pipelines(self) -> List[PipelineData]:
            return self.__pipelines

        @property
        def FailedPipelines(self) -> List[str]:
            return self.__failedPipelines

        @property
        def Objects(self):
            '''``(objectName, dataName, binary)`` for every binary first
            emitted by this compilation.'''
            return self.__objects

        def GetPipeline(self, name) -> Optional[PipelineData]:
            for pipeline in self.__pipelines:
                if pipeline.Name == name:
                    return pipeline
            return None

    def __init__(self, *, universe=None, objectTable=None,
                 nativeCompiler=None):
        self.parser = PslParser()
        self.universe = universe or CreateStandardUniverse()
        # Raises if the universe lacks a builtin, before any program is seen
        self.catalog = BuiltinCatalog(self.universe)
        if objectTable is None:
            objectTable = GetSharedObjectTable()
        self.objectTable = objectTable
        self.nativeCompiler = nativeCompiler

    def __GetAstPasses(self):
        return [
            ComputeTypes.GetPass(self.universe, self.catalog),
            ValidateSwizzle.GetPass(),
            ValidateVariableNames.GetPass(),
            PrettyPrint.GetPass(),
        ]

    def CompilePipeline(self, pipeline, targets,
                        errorHandler=None) -> PipelineData:
        '''Compile a typed pipeline for all ``targets``. Objects are only
        added to the object table once every target succeeded.'''
        errorHandler = errorHandler or Errors.ErrorHandler()

        program = ProgramModel(pipeline, self.catalog, errorHandler)
        graph = BuildStageGraph(program, self.catalog)

        compiled = []
        for target in targets:
            generator = GetGenerator(target, self.catalog)
            sources = StageSources(target)
            for stage in graph.GetActiveStages():
                sources.SetSource(stage, generator.Generate(graph, stage))

            stageCompiler = MakeStageCompiler(target, self.nativeCompiler,
                                              errorHandler)
            compiled.append((sources, stageCompiler.Compile(sources),))

        references = self.objectTable.Commit(
            [binaries for _, binaries in compiled])

        shaders = collections.OrderedDict()
        for (sources, binaries), objects in zip(compiled, references):
            stages = []
            for stage in sources.GetStages():
                reference = objects.get(stage)
                stages.append(StageData(
                    stage.GetName(), sources.GetSource(stage),
                    reference.name if reference else None,
                    reference.hash if reference else None))
            shaders[sources.GetTarget()] = ShaderData(sources.GetTarget(),
                                                      stages)

        return PipelineData(program.GetName(), PipelineLayout(program, graph),
                            shaders)

    def Compile(self, source, options={}) -> Optional[Result]:
        debugParsing = options.get("debug-parsing", False)
        debugPasses = options.get("debug-passes", False)
        targets = options.get("targets", [Target.GLSL])

        try:
            module = self.parser.Parse(source, debug=debugParsing)
        except Errors.CompileException as e:
            print(e)
            return None

        errorHandler = Errors.ErrorHandler()
        ok = RunPasses(module, self.__GetAstPasses(), debug=debugPasses,
                       errorHandler=errorHandler)
        errorHandler.Print()
        if not ok:
            return None

        knownObjects = set([name for name, _, _ in
                            self.objectTable.GetObjects()])

        pipelines = []
        failedPipelines = []
        for pipeline in module.GetPipelines():
            errorHandler = Errors.ErrorHandler()
            try:
                pipelines.append(self.CompilePipeline(pipeline, targets,
                                                      errorHandler))
            except Errors.BackendException as e:
                errorHandler.Print()
                for message in e.messages:
                    print(message)
                print(e)
                failedPipelines.append(pipeline.GetName())
            except Errors.CompileException as e:
                errorHandler.Print()
                print(e)
                failedPipelines.append(pipeline.GetName())
            else:
                # Warnings
                errorHandler.Print()

        objects = [o for o in self.objectTable.GetObjects()
                   if o[0] not in knownObjects]

        return Compiler.Result(pipelines=pipelines,
                               failedPipelines=failedPipelines,
                               objects=objects)
