import logging
import random
from typing import Optional

from rules.autoplay import check_loss, check_win, get_hint_move, get_safe_foundation_moves
from rules.cards import GameState, Move, Position, new_game_state
from rules.moves import can_move, execute_move
from solver.analyzer import SearchLimits, SearchPolicy, solve_async

logger = logging.getLogger(__name__)


class GameConfig:
    def __init__(self):
        self.seed = None
        self.autoMove = 1
        self.maxNodes = 15000
        self.progressEvery = 200
        self.canonicalFreeCells = 0

    def isAutoMove(self):
        return self.autoMove == 1

    def searchLimits(self) -> SearchLimits:
        return SearchLimits(max_nodes=self.maxNodes, progress_every=self.progressEvery)

    def searchPolicy(self) -> SearchPolicy:
        return SearchPolicy(canonical_free_cells=self.canonicalFreeCells == 1)

    @staticmethod
    def loadFromFile(path):
        """
        Read ``key=value`` lines; ``#`` starts a comment line.
        A missing or unreadable file gives the defaults.
        """
        config = GameConfig()
        try:
            with open(path, encoding="utf-8") as f:
                lines = f.readlines()
        except (OSError, UnicodeDecodeError):
            logger.warning("unreadable config %s, using defaults", path)
            return config
        for l in lines:
            l = l.strip()
            if len(l) == 0 or l.startswith("#") or "=" not in l:
                continue
            (k, v) = l.split("=", 1)
            k = k.strip()
            v = v.strip()
            # Only the fields set in __init__, never method names.
            if k not in vars(config):
                logger.warning("ignoring unknown config key %r", k)
                continue
            if v == "None":
                v = None
            else:
                try:
                    v = int(v)
                except ValueError:
                    logger.warning("ignoring non-integer value for %r: %r", k, v)
                    continue
            config.__setattr__(k, v)
        return config

    def saveToFile(self, path):
        with open(path, "w+", encoding="utf-8") as f:
            for k, v in self.__dict__.items():
                f.write(f"{k}={str(v)}\n")


class GameEvent:
    def perform(self, core):
        pass

    def undo(self, core):
        pass

    def isAuto(self) -> bool:
        return False


class CardMove(GameEvent):
    def __init__(self, move: Move, before: GameState, auto=False):
        self.move = move
        self.before = before
        self.auto = auto

    def undo(self, core):
        core.undoMove(self)

    def perform(self, core):
        core.doMove(self.move, False, self.auto)

    def isAuto(self):
        return self.auto


class Core:
    """
    ask*** : should be called by the host (player input, bot button)
    do*** : actual state change, no rule checks and no follow-up actions.
    """
    DEFAULT_CONFIG = GameConfig()

    def __init__(self):
        self.interface = None
        self.config: GameConfig = Core.DEFAULT_CONFIG

        self.state: Optional[GameState] = None
        self.gameEnded = False
        self.solutionPath: Optional[list] = None
        # Set while askSolve is suspended; board-changing ask*** calls are refused.
        self.solving = False

        self.history: HistoryRecorder = None

    def registerInterface(self, interface):
        self.interface = interface
        interface.core = self

    def startGame(self, gameConfig: GameConfig = DEFAULT_CONFIG):
        if self.interface is None:
            raise RuntimeError("interface is null")
        self.config = gameConfig
        self.loadState(new_game_state(seed=gameConfig.seed))
        logger.info("new game, seed=%s", gameConfig.seed)
        self.interface.onStart()
        if self.config.isAutoMove():
            self.askAutoPlay()
            # Cards banked on the deal are not undoable.
            self.history = HistoryRecorder(self)

    def loadState(self, state: GameState):
        self.state = state
        self.gameEnded = False
        self.solutionPath = None
        self.history = HistoryRecorder(self)

    def canMove(self, src: Position, dest: Position) -> bool:
        return can_move(self.state, src, dest)

    def checkWin(self):
        if not check_win(self.state):
            return False
        self.gameEnded = True
        self.interface.onWin()
        return True

    def checkLoss(self):
        if not check_loss(self.state):
            return False
        self.interface.onLoss()
        return True

    def askMove(self, src: Position, dest: Position) -> bool:
        if self.solving or self.gameEnded or not self.canMove(src, dest):
            return False
        self.solutionPath = None
        self.doMove(Move(src, dest), True)
        self.__afterMove()
        return True

    def __afterMove(self):
        if self.config.isAutoMove():
            self.askAutoPlay()
        if not self.checkWin():
            self.checkLoss()

    def askAutoPlay(self) -> int:
        """Bank every safe card; returns how many went home."""
        count = 0
        while True:
            move = get_safe_foundation_moves(self.state)
            if move is None:
                break
            self.doMove(move, True, auto=True)
            count += 1
        return count

    def askHint(self, rng: random.Random = None) -> Optional[Move]:
        if self.gameEnded:
            return None
        return get_hint_move(self.state, rng)

    async def askSolve(self) -> bool:
        """Search from the current board and keep the path for askBotStep."""
        if self.solving or self.gameEnded:
            return False
        start = self.state
        path = None
        self.solving = True
        try:
            result = await solve_async(
                start,
                on_progress=self.interface.onSolveProgress,
                limits=self.config.searchLimits(),
                policy=self.config.searchPolicy(),
            )
        finally:
            self.solving = False
        if self.state != start:
            logger.warning("board changed during solve, discarding result")
            return False
        if result.solved:
            path = list(result.solution)
        self.solutionPath = path
        return path is not None

    def askBotStep(self) -> bool:
        if self.solving or not self.solutionPath or self.gameEnded:
            return False
        move = self.solutionPath[0]
        if not self.canMove(move.source, move.dest):
            logger.warning("stored solution no longer applies at %s", move.to_notation())
            self.solutionPath = None
            return False
        self.solutionPath = self.solutionPath[1:]
        self.doMove(move, True)
        if not self.checkWin():
            self.checkLoss()
        return True

    def askUndo(self):
        if self.solving:
            return False
        self.solutionPath = None
        return self.history.undo()

    def askRedo(self):
        if self.solving or not self.history.redo():
            return False
        if not self.checkWin():
            self.checkLoss()
        return True

    def doMove(self, move: Move, doLog=True, auto=False):
        event = CardMove(move, self.state, auto)
        self.state = execute_move(self.state, move.source, move.dest)
        if doLog:
            self.history.log(event)
        self.interface.onEvent(event)

    def undoMove(self, event: CardMove):
        self.state = event.before
        self.gameEnded = False
        self.interface.onUndoEvent(event)


class HistoryRecorder:
    def __init__(self, core):
        self.core = core
        self.lst = []
        self.idx = 0  # idx - 1 is equal to the index of next operation to be undo

    def __preLog(self):
        if self.idx != len(self.lst):
            self.lst = self.lst[:self.idx]
        self.idx += 1

    def log(self, event):
        self.__preLog()
        self.lst.append(event)

    def undo(self):
        idx = self.idx - 1
        lst = self.lst
        if idx < 0 or idx >= len(lst):
            return False
        # Roll back trailing auto moves, then the player move before them.
        while idx >= 0:
            event = lst[idx]
            event.undo(self.core)
            idx -= 1
            if not event.isAuto():
                break
        self.idx = idx + 1
        return True

    def redo(self):
        idx = self.idx
        lst = self.lst
        if idx < 0 or idx >= len(lst):
            return False
        has = False
        while idx < len(lst):
            event = lst[idx]
            if not event.isAuto():
                if has:
                    break
                has = True
            event.perform(self.core)
            idx += 1
        self.idx = idx
        return True
