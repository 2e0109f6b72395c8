"""命令行界面模块

使用 Rich 库提供美化的命令行体验
"""

import argparse
import asyncio
import sys
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import get_config, load_config, save_config
from .core.run_controller import RunController
from .exceptions import ConfigurationError, ShareDlException
from .logging_config import setup_logging
from .models import Config, RunEvent, RunEventType, RunResult, RunStatus


class RichProgressHandler:
    """把运行事件渲染为 Rich 进度条"""

    def __init__(self, console: Console):
        self.console = console
        self.progress: Optional[Progress] = None
        self.task_id = None

    def start_progress(self):
        """开始进度显示"""
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
        )
        self.progress.start()
        self.task_id = self.progress.add_task("Waiting for manifest", total=None)

    def handle_event(self, event: RunEvent):
        """更新进度"""
        if self.progress is None or self.task_id is None:
            return

        if event.type == RunEventType.MANIFEST:
            self.progress.update(
                self.task_id,
                description=f"Downloading from {event.endpoint}",
                total=event.total,
                completed=0,
            )
        elif event.type in (RunEventType.PROGRESS, RunEventType.COMPLETED):
            self.progress.update(self.task_id, completed=event.received)
        elif event.type == RunEventType.RETRY:
            self.progress.console.print(
                f"[yellow]↻ retry {event.retry_count} for file {event.index}[/yellow]"
            )
        elif event.type == RunEventType.ABANDONED:
            self.progress.console.print(f"[red]✗ gave up on file {event.index}[/red]")
        elif event.type == RunEventType.WRITE_FAILED:
            self.progress.console.print(
                f"[red]✗ could not save file {event.index}: {event.message}[/red]"
            )

    def stop_progress(self):
        """停止进度显示"""
        if self.progress:
            self.progress.stop()
            self.progress = None
            self.task_id = None


class CLIApplication:
    """命令行应用程序"""

    def __init__(self):
        self.console = Console()
        self.progress_handler = RichProgressHandler(self.console)

    def create_parser(self) -> argparse.ArgumentParser:
        """创建命令行参数解析器"""
        parser = argparse.ArgumentParser(
            prog="share-dl",
            description="从共享文件端点批量下载文件",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
使用示例:
  share-dl -e http://192.168.1.20:8080/
  share-dl -d ~/Downloads/shared -e http://phone.local:8080/ -e http://10.0.0.5:8080/
  share-dl --config endpoints.json -d ./incoming
  share-dl -e http://10.0.0.5:8080/ --save-endpoints  # 保存端点供下次使用
            """,
        )

        parser.add_argument("-d", "--dir", default=".", help="下载目录 (默认: 当前目录)")
        parser.add_argument(
            "-e",
            "--endpoint",
            action="append",
            dest="endpoints",
            metavar="URL",
            help="候选端点，可重复指定",
        )
        parser.add_argument("--config", metavar="FILE", help="JSON 端点/配置文件")
        parser.add_argument(
            "--save-endpoints",
            action="store_true",
            help="把本次使用的端点写入配置文件",
        )

        parser.add_argument(
            "--idle-timeout", type=float, help="等待清单的最长时间(秒)，默认4"
        )
        parser.add_argument("--max-retries", type=int, help="每个文件的最大重试次数，默认4")
        parser.add_argument("--timeout", type=int, help="单个请求的超时时间(秒)，默认30")

        parser.add_argument("-v", "--verbose", action="store_true", help="显示详细输出")
        parser.add_argument(
            "--version", action="version", version=f"%(prog)s {__version__}"
        )

        return parser

    def build_config(self, args) -> Config:
        """合并环境变量、配置文件和命令行参数"""
        config = get_config()
        if args.config:
            config = load_config(args.config, base=config)

        config_dict = config.model_dump()
        if args.endpoints:
            config_dict["endpoints"] = args.endpoints
        if args.idle_timeout is not None:
            config_dict["idle_timeout"] = args.idle_timeout
        if args.max_retries is not None:
            config_dict["max_retries"] = args.max_retries
        if args.timeout is not None:
            config_dict["timeout"] = args.timeout

        try:
            return Config(**config_dict)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid command line option: {e}")

    def print_banner(self):
        """打印应用横幅"""
        banner = Text("share-dl", style="bold blue")
        banner.append(f" v{__version__}", style="dim")

        panel = Panel(banner, title="📂 Shared File Downloader", border_style="blue", padding=(1, 2))
        self.console.print(panel)

    def print_result(self, result: RunResult):
        """打印运行结果"""
        if result.status == RunStatus.COMPLETED:
            self.console.print(Panel(Text("✅ 下载完成!", style="bold green"), border_style="green"))
        elif result.status == RunStatus.PARTIAL:
            self.console.print(
                Panel(
                    Text(f"⚠️ 部分完成: {result.received}/{result.expected}", style="bold yellow"),
                    border_style="yellow",
                )
            )
        elif result.status == RunStatus.ABORTED:
            self.print_error("没有端点在限定时间内返回可下载的清单")
            return
        else:
            self.print_error(f"运行结束: {result.status.value}")
            return

        table = Table(title="📄 文件", show_header=True, border_style="dim")
        table.add_column("#", style="bold cyan", justify="right")
        table.add_column("文件名", style="white")
        table.add_column("大小", style="dim", justify="right")
        for item in sorted(result.files, key=lambda f: f.index):
            table.add_row(str(item.index), item.filename, item.formatted_size)
        self.console.print(table)
        self.console.print(f"📁 目录: [link]{result.directory}[/link]")

        if result.abandoned:
            self.console.print(f"[red]放弃的文件序号: {result.abandoned}[/red]")
        if result.failed:
            self.console.print(f"[red]写入失败的文件序号: {result.failed}[/red]")

    def print_error(self, error: str):
        """打印错误信息"""
        error_text = Text(f"❌ 错误: {error}", style="bold red")
        self.console.print(Panel(error_text, border_style="red"))

    async def run_download(self, args) -> int:
        """执行下载任务"""
        try:
            config = self.build_config(args)
            if args.save_endpoints:
                path = save_config(config, args.config)
                self.console.print(f"💾 端点已保存到 {path}")

            async with RunController(
                config=config, progress_callback=self.progress_handler.handle_event
            ) as controller:
                self.progress_handler.start_progress()
                try:
                    run = await controller.start_run(args.dir)
                    result = await run.wait()
                finally:
                    self.progress_handler.stop_progress()

            self.print_result(result)
            return 0 if result.success else 1

        except ShareDlException as e:
            self.print_error(str(e))
            return 1
        except KeyboardInterrupt:
            self.console.print("\n🛑 用户取消下载")
            return 1

    async def main(self, argv=None) -> int:
        """主入口函数"""
        parser = self.create_parser()
        args = parser.parse_args(argv)

        setup_logging(verbose=args.verbose, console=self.console)
        if not args.verbose:
            self.print_banner()

        return await self.run_download(args)


def main(argv=None) -> int:
    """CLI入口点 - 同步包装器"""
    app = CLIApplication()

    try:
        return asyncio.run(app.main(argv))
    except KeyboardInterrupt:
        print("\n🛑 程序被用户中断")
        return 1


if __name__ == "__main__":
    sys.exit(main())
