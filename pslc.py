#!/usr/bin/env python3
from psl.Compiler import Compiler
from psl.StageCompiler import DxcCompiler
from psl.Targets import Target, ParseTarget
import argparse
import sys


def GetTargets(args):
    targets = list(args.target)
    if args.glsl:
        targets.append(Target.GLSL)
    if args.hlsl:
        targets.append(Target.HLSL)
    if args.dxbc:
        targets.append(Target.DXBC)
    if args.dxil:
        targets.append(Target.DXIL)
    if args.spirv:
        targets.append(Target.VULKAN_SPIRV)
    if args.metal:
        targets.append(Target.METAL)
    # Keep the first mention of each target
    return list(dict.fromkeys(targets)) or [Target.GLSL]


def Compile(args):
    c = Compiler(nativeCompiler=DxcCompiler(args.dxc))
    result = c.Compile(args.FILE.read(),
        options={
                 'debug-parsing': args.debug_parsing,
                 'debug-passes': args.debug_passes,
                 'targets': GetTargets(args)})

    ok = result is not None and not result.FailedPipelines
    return ok, result


def PrintResult(result):
    for pipeline in result.Pipelines:
        for target, shader in pipeline.Shaders.items():
            for stage in shader.Stages:
                print('// {} {} {} {}'.format(pipeline.Name, target,
                                              stage.stage, stage.objectName))
                print(stage.source)


def main():
    parser = argparse.ArgumentParser('pslc')
    parser.add_argument('--debug-parsing', action='store_true',
        default=False,
        help='Print output information about the parsing stage')
    parser.add_argument('--debug-passes', action='store_true',
        help='Write debug output about the passes')
    parser.add_argument('--glsl', action='store_true', help='Emit GLSL')
    parser.add_argument('--hlsl', action='store_true', help='Emit HLSL')
    parser.add_argument('--dxbc', action='store_true',
        help='Compile to DXBC using dxc')
    parser.add_argument('--dxil', action='store_true',
        help='Compile to DXIL using dxc')
    parser.add_argument('--spirv', action='store_true',
        help='Compile to Vulkan SPIR-V using dxc')
    parser.add_argument('--metal', action='store_true', help='Emit Metal')
    parser.add_argument('--target', '-t', action='append', default=[],
        type=ParseTarget, metavar='TARGET',
        help='Emit TARGET, for instance metal-bin-ios. Can be repeated')
    parser.add_argument('--dxc', default='dxc',
        help='Path to the dxc executable')
    parser.add_argument('--verbose', '-v', action='store_true')
    parser.add_argument('FILE', type=argparse.FileType('r'),
        metavar='INPUT')
    parser.add_argument('-o', '--output', type=argparse.FileType('wb'))
    args = parser.parse_args()

    ok, result = Compile(args)

    if args.output:
        import pickle
        pickle.dump(result, args.output)
    elif result is not None:
        PrintResult(result)

    if args.verbose:
        if ok:
            print('SUCCESS')
        else:
            print('ERROR')

    if ok:
        sys.exit(0)
    else:
        sys.exit(1)


if __name__=='__main__':
    main()
