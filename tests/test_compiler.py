import argparse

import pytest

from psl.Compiler import Compiler, HostStatement, SamplerDescriptor
from psl.StageCompiler import NativeCompiler, NativeResult, ShaderObjectTable
from psl.Targets import Target
from psl.stage import Stage
import pslc

UNTRANSFORMED_SOURCE = '''
pipeline Untransformed (
    vertex_buffer(0) Vertex vertices,
    fragment_texture(0) texture2d diffuse,
    position float4 outPosition,
    color_target(0) float4 outColor)
{
    outPosition = float4(vertices.position, 1.0);
    outColor = diffuse.sample(vertices.uv, sampler(linear, repeat));
}
'''

BROKEN_SOURCE = '''
pipeline Broken (color_target(9) float4 outColor)
{
    outColor = float4(1.0, 1.0, 1.0, 1.0);
}
'''


class FailingCompiler(NativeCompiler):
    def Compile(self, source, profile, target):
        return NativeResult(None, 'unsupported')


@pytest.fixture
def objectTable():
    return ShaderObjectTable()


@pytest.fixture
def compiler(objectTable):
    return Compiler(objectTable=objectTable)


class TestCompiler:
    def testTexturedLayout(self, compiler, texturedSource):
        result = compiler.Compile(texturedSource)

        assert result.FailedPipelines == []
        layout = result.GetPipeline('Textured').Layout
        assert [(b.binding, b.stride, b.inputRate)
                for b in layout.VertexBindings] == [(0, 20, 'PerVertex')]
        assert [a.format for a in layout.VertexAttributes] == \
            ['RGB32_SFLOAT', 'RG32_SFLOAT']
        assert [(t.name, t.slot, t.stage) for t in layout.Textures] == \
            [('diffuse', 0, 'fragment')]
        assert layout.Samplers == [
            SamplerDescriptor('linear', 'repeat', 1 << int(Stage.Fragment))]
        assert [(c.name, c.index) for c in layout.ColorTargets] == \
            [('outColor', 0)]
        assert layout.HostStatements == [
            HostStatement('vertex', 'host_to_vertex', '_hv0', 'transform')]
        assert [(p.stage, p.field) for p in layout.PushStatements] == \
            [('vertex', '_hv0')]

    def testTexturedShaders(self, compiler, objectTable, texturedSource):
        result = compiler.Compile(texturedSource,
                                  options={'targets': [Target.GLSL,
                                                       Target.HLSL]})

        pipeline = result.GetPipeline('Textured')
        assert list(pipeline.Shaders.keys()) == [Target.GLSL, Target.HLSL]

        glsl = pipeline.Shaders[Target.GLSL]
        assert [s.stage for s in glsl.Stages] == ['vertex', 'fragment']
        vertex = glsl.GetStage(Stage.Vertex)
        assert vertex.source.startswith('#version 450 core')
        assert objectTable.GetObject(vertex.hash) == \
            vertex.source.encode('utf-8') + b'\0'
        assert vertex.objectName.startswith('_psl_object_')

        assert len(result.Objects) == 4

    def testSharedStagesAreEmittedOnce(self, compiler, texturedSource):
        result = compiler.Compile(texturedSource + UNTRANSFORMED_SOURCE)

        assert len(result.Pipelines) == 2
        textured = result.GetPipeline('Textured').Shaders[Target.GLSL]
        untransformed = \
            result.GetPipeline('Untransformed').Shaders[Target.GLSL]
        assert textured.GetStage(Stage.Fragment).objectName == \
            untransformed.GetStage(Stage.Fragment).objectName
        assert textured.GetStage(Stage.Vertex).objectName != \
            untransformed.GetStage(Stage.Vertex).objectName
        assert len(result.Objects) == 3

    def testRecompileEmitsNothingNew(self, compiler, objectTable,
                                     texturedSource):
        compiler.Compile(texturedSource)
        result = compiler.Compile(texturedSource)

        assert result.Objects == []
        assert len(objectTable) == 2

    def testFailedTargetLeavesNoObjects(self, objectTable, texturedSource):
        compiler = Compiler(objectTable=objectTable,
                            nativeCompiler=FailingCompiler())
        result = compiler.Compile(texturedSource,
                                  options={'targets': [Target.GLSL,
                                                       Target.DXIL]})

        assert result.FailedPipelines == ['Textured']
        assert result.Pipelines == []
        assert result.Objects == []
        assert len(objectTable) == 0

    def testMissingNativeCompiler(self, compiler, texturedSource):
        result = compiler.Compile(texturedSource,
                                  options={'targets': [Target.DXBC]})

        assert result.FailedPipelines == ['Textured']

    def testInvalidPipelineDoesNotStopOthers(self, compiler, texturedSource):
        result = compiler.Compile(texturedSource + BROKEN_SOURCE)

        assert result.FailedPipelines == ['Broken']
        assert [p.Name for p in result.Pipelines] == ['Textured']

    def testSyntaxError(self, compiler):
        assert compiler.Compile('pipeline (') is None


class TestCommandLine:
    def __Args(self, **flags):
        args = argparse.Namespace(glsl=False, hlsl=False, dxbc=False,
                                  dxil=False, spirv=False, metal=False,
                                  target=[])
        for name, value in flags.items():
            setattr(args, name, value)
        return args

    def testDefaultTarget(self):
        assert pslc.GetTargets(self.__Args()) == [Target.GLSL]

    def testSelectedTargets(self):
        assert pslc.GetTargets(self.__Args(hlsl=True, spirv=True)) == \
            [Target.HLSL, Target.VULKAN_SPIRV]

    def testNamedTargets(self):
        args = self.__Args(target=[pslc.ParseTarget('DXIL')], dxil=True,
                           glsl=True)

        assert pslc.GetTargets(args) == [Target.DXIL, Target.GLSL]
