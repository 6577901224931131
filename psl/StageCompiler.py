'''Turns stage sources into stage binaries.

Text targets use the source itself, NUL terminated. Native targets hand
each stage to a ``NativeCompiler``. Binaries are identified by a 64-bit
content hash; the process wide ``ShaderObjectTable`` stores each distinct
binary once.'''
import collections
import hashlib
import os
import subprocess
import tempfile
import threading

from psl import Errors
from psl.Targets import Target, IsNativeTarget, GetProfile
from psl.stage import Stage, GPU_STAGES


class StageSources:
    def __init__(self, target: Target):
        self.__target = target
        self.__sources = collections.OrderedDict()

    def GetTarget(self) -> Target:
        return self.__target

    def SetSource(self, stage: Stage, source: str):
        self.__sources[stage] = source

    def GetSource(self, stage: Stage):
        '''The source of ``stage``, ``None`` if the stage is not active.'''
        return self.__sources.get(stage)

    def GetStages(self):
        return [s for s in GPU_STAGES if s in self.__sources]

    def __iter__(self):
        return iter([(s, self.__sources[s],) for s in self.GetStages()])


def ComputeHash(binary: bytes) -> int:
    '''64-bit content hash of a stage binary.'''
    return int.from_bytes(hashlib.blake2b(binary, digest_size=8).digest(),
                          'little')


class StageBinaries:
    def __init__(self, target: Target):
        self.__target = target
        self.__binaries = collections.OrderedDict()
        self.__hashes = {}

    def GetTarget(self) -> Target:
        return self.__target

    def SetBinary(self, stage: Stage, binary: bytes):
        self.__binaries[stage] = binary
        self.__hashes.pop(stage, None)

    def GetBinary(self, stage: Stage):
        return self.__binaries.get(stage)

    def GetStages(self):
        return [s for s in GPU_STAGES if s in self.__binaries]

    def UpdateHashes(self):
        '''Hash all non-empty binaries.'''
        for stage, binary in self.__binaries.items():
            if binary:
                self.__hashes[stage] = ComputeHash(binary)

    def GetHash(self, stage: Stage):
        return self.__hashes.get(stage)

    def __iter__(self):
        return iter([(s, self.__binaries[s],) for s in self.GetStages()])


NativeResult = collections.namedtuple('NativeResult',
                                      ['binary', 'diagnostics'])


class NativeCompiler:
    '''Compiles the source of a single stage. Returns a ``NativeResult``;
    ``binary`` is ``None`` or empty if compilation failed, ``diagnostics``
    holds the compiler messages as text.'''
    def Compile(self, source: str, profile: str,
                target: Target) -> NativeResult:
        raise NotImplementedError()


class DxcCompiler(NativeCompiler):
    '''Runs the DirectX shader compiler executable.'''
    def __init__(self, executable='dxc'):
        self.__executable = executable

    def GetCommandLine(self, sourceFile, outputFile, profile, target):
        arguments = [self.__executable, '-T', profile, '-E', 'main']
        if target == Target.VULKAN_SPIRV:
            arguments.append('-spirv')
        arguments += ['-Fo', outputFile, sourceFile]
        return arguments

    def Compile(self, source, profile, target):
        with tempfile.TemporaryDirectory(prefix='psl') as directory:
            sourceFile = os.path.join(directory, 'stage.hlsl')
            outputFile = os.path.join(directory, 'stage.bin')
            with open(sourceFile, 'w', encoding='utf-8') as f:
                f.write(source)

            try:
                process = subprocess.run(
                    self.GetCommandLine(sourceFile, outputFile, profile,
                                        target),
                    stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
            except FileNotFoundError:
                return NativeResult(None, "could not run '{}'".format(
                    self.__executable))

            diagnostics = process.stdout.decode('utf-8', errors='replace')
            binary = None
            if process.returncode == 0 and os.path.exists(outputFile):
                with open(outputFile, 'rb') as f:
                    binary = f.read()

            return NativeResult(binary, diagnostics.strip())


class StageCompiler:
    def Compile(self, sources: StageSources) -> StageBinaries:
        raise NotImplementedError()


class TextStageCompiler(StageCompiler):
    def Compile(self, sources):
        binaries = StageBinaries(sources.GetTarget())
        for stage, source in sources:
            binaries.SetBinary(stage, source.encode('utf-8') + b'\0')
        binaries.UpdateHashes()
        return binaries


class NativeStageCompiler(StageCompiler):
    '''Compiles every stage, even after a failure, so all problems are
    reported at once. Warnings go to the error handler and do not stop
    compilation.'''
    def __init__(self, compiler: NativeCompiler, errorHandler=None):
        self.__compiler = compiler
        self.__errorHandler = errorHandler or Errors.ErrorHandler()

    def __CompileStage(self, stage, source, target):
        result = self.__compiler.Compile(source, GetProfile(stage, target),
                                         target)
        if result is None:
            Errors.ERROR_NO_COMPILER_RESULT.Raise(target, stage.GetName())

        if not result.binary:
            Errors.ERROR_BACKEND_FAILED.Raise(
                stage.GetName(), target, result.diagnostics or 'no binary')

        if result.diagnostics:
            self.__errorHandler.Report(Errors.WARNING_BACKEND_DIAGNOSTICS,
                                       stage.GetName(), target,
                                       result.diagnostics)
        return result.binary

    def Compile(self, sources):
        target = sources.GetTarget()
        binaries = StageBinaries(target)

        stageErrors = Errors.ErrorHandler()
        for stage, source in sources:
            with Errors.CompileExceptionToErrorHandler(stageErrors):
                binaries.SetBinary(stage,
                                   self.__CompileStage(stage, source, target))

        if stageErrors.HasErrors():
            raise Errors.BackendException(target, stageErrors.messages)

        binaries.UpdateHashes()
        return binaries


def MakeStageCompiler(target: Target, nativeCompiler=None,
                      errorHandler=None) -> StageCompiler:
    if not IsNativeTarget(target):
        return TextStageCompiler()
    if nativeCompiler is None:
        Errors.ERROR_NO_NATIVE_COMPILER.Raise(target)
    return NativeStageCompiler(nativeCompiler, errorHandler)


def GetObjectName(hashValue: int) -> str:
    return '_psl_object_{:016X}'.format(hashValue)


def GetDataName(hashValue: int) -> str:
    return '_psl_data_{:016X}'.format(hashValue)


ObjectReference = collections.namedtuple(
    'ObjectReference', ['name', 'hash', 'isNew'])


class ShaderObjectTable:
    '''Process wide set of emitted stage binaries, keyed by content hash.

    A program's binaries are committed together, after all of its targets
    compiled, so a failing program never leaves objects behind.'''
    def __init__(self):
        self.__lock = threading.Lock()
        self.__objects = collections.OrderedDict()

    def Commit(self, binaries):
        '''Add the stage binaries of one program, a list of
        ``StageBinaries``. Returns, per entry, a dictionary mapping each
        stage to its ``ObjectReference``.'''
        result = []
        with self.__lock:
            for stageBinaries in binaries:
                references = collections.OrderedDict()
                for stage, binary in stageBinaries:
                    hashValue = stageBinaries.GetHash(stage)
                    if hashValue is None:
                        continue
                    isNew = hashValue not in self.__objects
                    if isNew:
                        self.__objects[hashValue] = binary
                    references[stage] = ObjectReference(
                        GetObjectName(hashValue), hashValue, isNew)
                result.append(references)
        return result

    def Contains(self, hashValue: int) -> bool:
        with self.__lock:
            return hashValue in self.__objects

    def GetObject(self, hashValue: int):
        with self.__lock:
            return self.__objects.get(hashValue)

    def GetObjects(self):
        '''``(objectName, dataName, binary)`` for every stored object, in
        insertion order.'''
        with self.__lock:
            return [(GetObjectName(h), GetDataName(h), b,)
                    for h, b in self.__objects.items()]

    def __len__(self):
        with self.__lock:
            return len(self.__objects)


_sharedTable = ShaderObjectTable()


def GetSharedObjectTable() -> ShaderObjectTable:
    return _sharedTable
