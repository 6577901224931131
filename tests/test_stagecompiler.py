import pytest

from psl import Errors
from psl.StageCompiler import (ComputeHash, DxcCompiler, MakeStageCompiler,
                               NativeCompiler, NativeResult,
                               NativeStageCompiler, ShaderObjectTable,
                               StageSources, TextStageCompiler,
                               GetObjectName)
from psl.Targets import Target, GetProfile, IsNativeTarget
from psl.stage import Stage


class FakeCompiler(NativeCompiler):
    '''Returns the source upper-cased, fails for sources containing
    ``broken`` and warns for sources containing ``warn``.'''
    def __init__(self):
        self.profiles = []

    def Compile(self, source, profile, target):
        self.profiles.append(profile)
        if 'broken' in source:
            return NativeResult(None, 'syntax error')
        if 'warn' in source:
            return NativeResult(source.upper().encode('utf-8'),
                                'implicit truncation')
        return NativeResult(source.upper().encode('utf-8'), '')


class SilentCompiler(NativeCompiler):
    def Compile(self, source, profile, target):
        return None


def _Sources(target, **stages):
    sources = StageSources(target)
    for name, source in stages.items():
        sources.SetSource(Stage[name], source)
    return sources


class TestTextStageCompiler:
    def testNulTerminated(self):
        binaries = TextStageCompiler().Compile(
            _Sources(Target.GLSL, Vertex='abc'))

        assert binaries.GetBinary(Stage.Vertex) == b'abc\0'
        assert binaries.GetHash(Stage.Vertex) == ComputeHash(b'abc\0')

    def testStageOrder(self):
        binaries = TextStageCompiler().Compile(
            _Sources(Target.HLSL, Fragment='f', Vertex='v'))

        assert binaries.GetStages() == [Stage.Vertex, Stage.Fragment]
        assert binaries.GetTarget() == Target.HLSL

    def testHashIsStable(self):
        assert ComputeHash(b'abc\0') == ComputeHash(b'abc\0')
        assert ComputeHash(b'abc\0') != ComputeHash(b'abd\0')
        assert ComputeHash(b'abc\0') < 2 ** 64


class TestNativeStageCompiler:
    def testProfiles(self):
        compiler = FakeCompiler()
        NativeStageCompiler(compiler).Compile(
            _Sources(Target.DXIL, Vertex='v', Fragment='f'))

        assert compiler.profiles == ['vs_6_0', 'ps_6_0']

    def testWarningKeepsBinary(self):
        errorHandler = Errors.ErrorHandler()
        binaries = NativeStageCompiler(FakeCompiler(), errorHandler).Compile(
            _Sources(Target.DXIL, Vertex='warn'))

        assert binaries.GetBinary(Stage.Vertex) == b'WARN'
        assert errorHandler.warnings == 1
        assert not errorHandler.HasErrors()
        assert 'P5003' in errorHandler.messages[0]

    def testFailureReportsEveryStage(self):
        compiler = FakeCompiler()
        with pytest.raises(Errors.BackendException) as e:
            NativeStageCompiler(compiler).Compile(
                _Sources(Target.DXIL, Vertex='v', Fragment='broken'))

        # The vertex stage is still compiled
        assert compiler.profiles == ['vs_6_0', 'ps_6_0']
        assert len(e.value.messages) == 1
        assert 'P5002' in e.value.messages[0]
        assert 'syntax error' in e.value.messages[0]
        assert e.value.message == Errors.ERROR_STAGES_FAILED

    def testMissingResult(self):
        with pytest.raises(Errors.BackendException) as e:
            NativeStageCompiler(SilentCompiler()).Compile(
                _Sources(Target.DXBC, Vertex='v'))

        assert 'P5001' in e.value.messages[0]

    def testNoNativeCompiler(self):
        with pytest.raises(Errors.CompileException) as e:
            MakeStageCompiler(Target.DXIL)

        assert e.value.message == Errors.ERROR_NO_NATIVE_COMPILER

    def testTextTargetsIgnoreNativeCompiler(self):
        stageCompiler = MakeStageCompiler(Target.METAL, FakeCompiler())

        assert isinstance(stageCompiler, TextStageCompiler)


class TestShaderObjectTable:
    def testDeduplication(self):
        table = ShaderObjectTable()
        binaries = TextStageCompiler().Compile(
            _Sources(Target.GLSL, Vertex='v', Fragment='f'))

        first = table.Commit([binaries])[0]
        second = table.Commit([binaries])[0]

        assert first[Stage.Vertex].isNew
        assert not second[Stage.Vertex].isNew
        assert first[Stage.Vertex].name == second[Stage.Vertex].name
        assert len(table) == 2

    def testSharedStage(self):
        table = ShaderObjectTable()
        first = TextStageCompiler().Compile(
            _Sources(Target.GLSL, Vertex='a', Fragment='f'))
        second = TextStageCompiler().Compile(
            _Sources(Target.GLSL, Vertex='b', Fragment='f'))

        table.Commit([first, second])

        assert len(table) == 3
        hashValue = ComputeHash(b'f\0')
        assert table.Contains(hashValue)
        assert table.GetObject(hashValue) == b'f\0'

    def testObjectNames(self):
        assert GetObjectName(0xAB) == '_psl_object_00000000000000AB'

        table = ShaderObjectTable()
        binaries = TextStageCompiler().Compile(
            _Sources(Target.GLSL, Vertex='v'))
        table.Commit([binaries])

        name, dataName, binary = table.GetObjects()[0]
        assert name.startswith('_psl_object_')
        assert dataName.startswith('_psl_data_')
        assert name[-16:] == dataName[-16:]
        assert binary == b'v\0'


class TestDxc:
    def testCommandLine(self):
        compiler = DxcCompiler()

        assert compiler.GetCommandLine('in.hlsl', 'out.bin', 'ps_6_0',
                                       Target.VULKAN_SPIRV) == [
            'dxc', '-T', 'ps_6_0', '-E', 'main', '-spirv', '-Fo', 'out.bin',
            'in.hlsl']
        assert '-spirv' not in compiler.GetCommandLine(
            'in.hlsl', 'out.bin', 'vs_6_0', Target.DXIL)

    def testMissingExecutable(self):
        result = DxcCompiler('psl-no-such-dxc').Compile(
            'float4 main() : SV_Target { return 0; }', 'ps_6_0', Target.DXIL)

        assert result.binary is None
        assert 'psl-no-such-dxc' in result.diagnostics

    def testProfiles(self):
        assert GetProfile(Stage.Vertex, Target.DXBC) == 'vs_5_0'
        assert GetProfile(Stage.Geometry, Target.DXIL) == 'gs_6_0'
        assert GetProfile(Stage.Control, Target.VULKAN_SPIRV) == 'hs_6_0'
        assert not IsNativeTarget(Target.HLSL)
