from enum import Enum

from psl.Builtins import Family
from psl.stage import Stage


class Target(Enum):
    GLSL = 'glsl'
    HLSL = 'hlsl'
    DXBC = 'dxbc'
    DXIL = 'dxil'
    VULKAN_SPIRV = 'vulkan-spirv'
    METAL = 'metal'
    METAL_BIN_MAC = 'metal-bin-mac'
    METAL_BIN_IOS = 'metal-bin-ios'
    METAL_BIN_TVOS = 'metal-bin-tvos'

    def GetName(self) -> str:
        return self.value

    def __str__(self):
        return self.value


_NATIVE_TARGETS = {Target.DXBC, Target.DXIL, Target.VULKAN_SPIRV}

_PROFILE_PREFIXES = {
    Stage.Vertex: 'vs',
    Stage.Control: 'hs',
    Stage.Evaluation: 'ds',
    Stage.Geometry: 'gs',
    Stage.Fragment: 'ps',
}


def GetFamily(target: Target) -> Family:
    '''The spelling column used when printing code for ``target``. Only
    GLSL uses the GLSL column, all other targets go through the HLSL
    printer.'''
    if target == Target.GLSL:
        return Family.GLSL
    return Family.HLSL


def IsNativeTarget(target: Target) -> bool:
    '''True if stage sources have to be compiled by an external compiler
    for this target.'''
    return target in _NATIVE_TARGETS


def GetProfile(stage: Stage, target: Target) -> str:
    '''Native compiler profile, for instance ``ps_6_0``.'''
    assert IsNativeTarget(target)
    if target == Target.DXBC:
        version = '5_0'
    else:
        version = '6_0'
    return '{}_{}'.format(_PROFILE_PREFIXES[stage], version)


def ParseTarget(name: str) -> Target:
    return Target(name.lower())
